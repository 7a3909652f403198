"""Memo ledger persisted between invocations.

The platform API cannot tell us everything we need in a single query. Most
notably, pull request runs report the tree of the head branch rather than the
tree of the merge commit that was actually checked out. The ledger keeps this
information, together with the decision taken by each run, keyed by run id.

The serialized form is versioned::

    {"v": 1, "r": {"<run id>": {"t": "<tree hash>", "r": {...result...}}}}

Blobs with an unknown version are rejected with :class:`LedgerFormatError`.
"""

import io
import json
import logging
from typing import Dict, Iterable, List, Literal, Optional
import zipfile

import pydantic

from skipguard.errors import LedgerFormatError

logger = logging.getLogger("skipguard")

LEDGER_VERSION = 1
LEDGER_FILE_NAME = "data.json"


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")


class PathsResultEntry(Model):
    should_skip: Optional[bool] = None
    backtrack_count: int
    skipped_by: Optional[int] = None
    matched_files: Optional[List[str]] = None


class ResultEntry(Model):
    should_skip: bool
    reason: str
    skipped_by: Optional[int] = None
    paths_result: Optional[Dict[str, PathsResultEntry]] = None
    changed_files: Optional[List[List[str]]] = None


class LedgerEntry(Model):
    # tree hash override
    t: Optional[str] = None
    # result
    r: Optional[ResultEntry] = None


class LedgerData(Model):
    v: Literal[1] = LEDGER_VERSION
    r: Dict[int, LedgerEntry] = pydantic.Field(default_factory=dict)


class MemoLedger:
    entries: Dict[int, LedgerEntry]

    def __init__(self, entries: Optional[Dict[int, LedgerEntry]] = None):
        self.entries = dict(entries or {})

    @classmethod
    def from_data(cls, data: Optional[LedgerData]) -> "MemoLedger":
        if data is None:
            return cls()
        return cls(data.r)

    def __len__(self) -> int:
        return len(self.entries)

    def tree_override(self, run_id: int) -> Optional[str]:
        entry = self.entries.get(run_id)
        return entry.t if entry is not None else None

    def set_tree_override(self, run_id: int, tree_hash: str) -> None:
        entry = self.entries.get(run_id) or LedgerEntry()
        self.entries[run_id] = entry.model_copy(update={"t": tree_hash})

    def record_result(self, run_id: int, result: Optional[ResultEntry]) -> None:
        entry = self.entries.get(run_id) or LedgerEntry()
        self.entries[run_id] = entry.model_copy(update={"r": result})

    def pruned(
        self, keep_ids: Optional[Iterable[int]], max_entries: int
    ) -> LedgerData:
        """Return the data to persist.

        Only entries of runs in ``keep_ids`` survive, newest (highest id) first,
        capped at ``max_entries``. With ``keep_ids`` set to None no entry is
        dropped for being unknown.
        """
        run_ids = sorted(self.entries, reverse=True)
        if keep_ids is not None:
            keep = set(keep_ids)
            run_ids = [i for i in run_ids if i in keep]
        dropped = len(self.entries) - min(len(run_ids), max_entries)
        if dropped > 0:
            logger.debug("Pruning %d ledger entries", dropped)
        return LedgerData(
            r={run_id: self.entries[run_id] for run_id in run_ids[:max_entries]}
        )


def parse_ledger(raw: str) -> LedgerData:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise LedgerFormatError(f"Ledger is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise LedgerFormatError("Ledger is not a JSON object")
    if data.get("v") != LEDGER_VERSION:
        raise LedgerFormatError(f"Unsupported ledger version {data.get('v')!r}")
    try:
        return LedgerData.model_validate(data)
    except pydantic.ValidationError as e:
        raise LedgerFormatError(f"Invalid ledger data: {e}")


def encode_blob(data: LedgerData) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(LEDGER_FILE_NAME, data.model_dump_json(exclude_none=True))
    return buf.getvalue()


def decode_blob(blob: bytes) -> LedgerData:
    try:
        with zipfile.ZipFile(io.BytesIO(blob)) as zf:
            raw = zf.read(LEDGER_FILE_NAME).decode()
    except (zipfile.BadZipFile, KeyError) as e:
        raise LedgerFormatError(f"Invalid ledger archive: {e}")
    return parse_ledger(raw)
