from skipguard.decision.orchestrator import DecisionOrchestrator, Evaluation, evaluate_run
from skipguard.decision.paths import PathBacktracker
from skipguard.decision.types import (
    Decision,
    FilterState,
    HardFailure,
    Outcome,
    PathsResult,
    Reason,
    RunContext,
)

__all__ = [
    "Decision",
    "DecisionOrchestrator",
    "Evaluation",
    "FilterState",
    "HardFailure",
    "Outcome",
    "PathBacktracker",
    "PathsResult",
    "Reason",
    "RunContext",
    "evaluate_run",
]
