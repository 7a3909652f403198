import io
import json
import zipfile

import pytest

from skipguard.errors import LedgerFormatError
from skipguard.ledger import (
    LEDGER_FILE_NAME,
    LedgerData,
    LedgerEntry,
    MemoLedger,
    PathsResultEntry,
    ResultEntry,
    decode_blob,
    encode_blob,
    parse_ledger,
)


def _zip(content: str, name: str = LEDGER_FILE_NAME) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(name, content)
    return buf.getvalue()


def test_blob_preserves_entries():
    data = LedgerData(
        r={
            7: LedgerEntry(
                t="tree-merge",
                r=ResultEntry(
                    should_skip=True,
                    reason="paths",
                    skipped_by=5,
                    paths_result={
                        "global": PathsResultEntry(
                            should_skip=True, backtrack_count=2, skipped_by=5
                        )
                    },
                    changed_files=[["README.md"], ["docs/index.md"], []],
                ),
            ),
            8: LedgerEntry(t="tree-other"),
        }
    )
    decoded = decode_blob(encode_blob(data))
    assert decoded == data
    assert decoded.r[7].r.paths_result["global"].backtrack_count == 2


def test_parse_reads_string_run_ids():
    raw = json.dumps({"v": 1, "r": {"42": {"t": "abc"}}})
    data = parse_ledger(raw)
    assert data.r[42].t == "abc"


@pytest.mark.parametrize(
    "raw",
    [
        json.dumps({"v": 2, "r": {}}),
        json.dumps({"r": {}}),
        json.dumps([1, 2]),
        json.dumps({"v": 1, "r": {"1": {"t": "a", "unknown": 1}}}),
        "{not json",
    ],
)
def test_parse_rejects_unknown_data(raw):
    with pytest.raises(LedgerFormatError):
        parse_ledger(raw)


def test_decode_rejects_bad_archives():
    with pytest.raises(LedgerFormatError):
        decode_blob(b"not a zip file")
    with pytest.raises(LedgerFormatError):
        decode_blob(_zip("{}", name="other.json"))
    with pytest.raises(LedgerFormatError, match="version"):
        decode_blob(_zip(json.dumps({"v": 99, "r": {}})))


def test_overrides_and_results():
    ledger = MemoLedger()
    assert ledger.tree_override(1) is None

    ledger.set_tree_override(1, "tree-a")
    assert ledger.tree_override(1) == "tree-a"
    assert 1 in ledger.entries

    result = ResultEntry(should_skip=False, reason="no_transferable_run")
    ledger.record_result(1, result)
    assert ledger.entries[1].t == "tree-a"
    assert ledger.entries[1].r == result

    ledger.record_result(2, None)
    assert ledger.entries[2] == LedgerEntry()


def test_pruned_keeps_known_runs_newest_first():
    ledger = MemoLedger({i: LedgerEntry(t=f"tree-{i}") for i in range(1, 11)})

    data = ledger.pruned(keep_ids=[10, 9, 8, 2, 1, 99], max_entries=100)
    assert list(data.r) == [10, 9, 8, 2, 1]

    data = ledger.pruned(keep_ids=range(1, 11), max_entries=3)
    assert list(data.r) == [10, 9, 8]
    assert data.v == 1

    data = ledger.pruned(keep_ids=None, max_entries=100)
    assert list(data.r) == list(range(10, 0, -1))

    data = ledger.pruned(keep_ids=None, max_entries=2)
    assert list(data.r) == [10, 9]


def test_from_data():
    assert len(MemoLedger.from_data(None)) == 0
    ledger = MemoLedger.from_data(LedgerData(r={3: LedgerEntry(t="x")}))
    assert ledger.tree_override(3) == "x"
