from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional

from skipguard.ledger import PathsResultEntry, ResultEntry
from skipguard.registry import WorkflowRun


@dataclass(frozen=True)
class RunContext:
    repo: str
    run_id: int
    sha: Optional[str] = None
    job: str = ""
    action: str = ""
    dry_run: bool = False


class Reason(str, Enum):
    do_not_skip = "do_not_skip"
    skip_after_successful_duplicate = "skip_after_successful_duplicate"
    concurrent_skipping = "concurrent_skipping"
    paths = "paths"
    no_transferable_run = "no_transferable_run"


@dataclass
class FilterState:
    name: str
    should_skip: Optional[bool] = None
    backtrack_count: int = 0
    skipped_by: Optional[WorkflowRun] = None
    matched_files: Optional[List[str]] = None

    @property
    def resolved(self) -> bool:
        return self.should_skip is not None

    def to_entry(self) -> PathsResultEntry:
        return PathsResultEntry(
            should_skip=self.should_skip,
            backtrack_count=self.backtrack_count,
            skipped_by=self.skipped_by.id if self.skipped_by else None,
            matched_files=self.matched_files,
        )

    def to_output(self) -> dict:
        data = {
            "should_skip": self.should_skip,
            "backtrack_count": self.backtrack_count,
        }
        if self.skipped_by is not None:
            data["skipped_by"] = self.skipped_by.model_dump(mode="json")
        if self.matched_files is not None:
            data["matched_files"] = self.matched_files
        return data


class PathsResult:
    """Filter states indexed by filter name."""

    def __init__(self, names: List[str]):
        self._states: Dict[str, FilterState] = {name: FilterState(name) for name in names}

    def __getitem__(self, name: str) -> FilterState:
        return self._states[name]

    def __contains__(self, name: str) -> bool:
        return name in self._states

    def __iter__(self) -> Iterator[FilterState]:
        return iter(self._states.values())

    def unresolved(self) -> List[FilterState]:
        # snapshot, states are resolved while the caller iterates
        return [s for s in self._states.values() if not s.resolved]

    def resolve(
        self,
        name: str,
        should_skip: bool,
        distance: int,
        skipped_by: Optional[WorkflowRun] = None,
    ) -> None:
        state = self._states[name]
        state.should_skip = should_skip
        state.backtrack_count = distance
        state.skipped_by = skipped_by

    def to_entries(self) -> Dict[str, PathsResultEntry]:
        return {name: s.to_entry() for name, s in self._states.items()}

    def to_output(self) -> Dict[str, dict]:
        return {name: s.to_output() for name, s in self._states.items()}


@dataclass(frozen=True)
class Decision:
    should_skip: bool
    reason: Reason
    skipped_by: Optional[WorkflowRun] = None
    paths_result: Optional[PathsResult] = None
    changed_files: Optional[List[List[str]]] = None

    def to_entry(self) -> ResultEntry:
        return ResultEntry(
            should_skip=self.should_skip,
            reason=self.reason.value,
            skipped_by=self.skipped_by.id if self.skipped_by else None,
            paths_result=(
                self.paths_result.to_entries() if self.paths_result is not None else None
            ),
            changed_files=self.changed_files,
        )


@dataclass(frozen=True)
class HardFailure:
    message: str
    failed_run: WorkflowRun


@dataclass(frozen=True)
class Outcome:
    """Result of one evaluation step: a decision, a hard failure, or neither."""

    decision: Optional[Decision] = None
    failure: Optional[HardFailure] = None

    @property
    def conclusive(self) -> bool:
        return self.decision is not None or self.failure is not None

    @classmethod
    def proceed(cls) -> Outcome:
        return cls()

    @classmethod
    def verdict(cls, decision: Decision) -> Outcome:
        return cls(decision=decision)

    @classmethod
    def fail(cls, failure: HardFailure) -> Outcome:
        return cls(failure=failure)


@dataclass
class CancelReport:
    cancelled: List[WorkflowRun] = field(default_factory=list)
    failed: List[WorkflowRun] = field(default_factory=list)
