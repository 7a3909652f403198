from datetime import datetime, timezone
import json
import logging
from typing import Dict, List, Optional
import uuid

import humanize
from tabulate import tabulate

from skipguard.decision import Decision, Evaluation, HardFailure
from skipguard.registry import WorkflowRun

logger = logging.getLogger("skipguard")


def build_outputs(decision: Decision) -> Dict[str, str]:
    skipped_by = decision.skipped_by.model_dump(mode="json") if decision.skipped_by else {}
    paths_result = decision.paths_result.to_output() if decision.paths_result else {}
    return {
        "should_skip": "true" if decision.should_skip else "false",
        "reason": decision.reason.value,
        "skipped_by": json.dumps(skipped_by),
        "paths_result": json.dumps(paths_result),
        "changed_files": json.dumps(decision.changed_files or []),
    }


def write_outputs(path: str, outputs: Dict[str, str]) -> None:
    with open(path, "a", encoding="utf-8") as fh:
        for name, value in outputs.items():
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            fh.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")


def _run_link(run: WorkflowRun, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    age = humanize.naturaltime(now - run.created_at)
    return f"[#{run.run_number}]({run.html_url}) (created {age})"


def _paths_table(decision: Decision) -> str:
    rows = []
    for state in decision.paths_result:
        if state.should_skip is None:
            verdict = "unknown"
        else:
            verdict = "skip" if state.should_skip else "run"
        rows.append(
            (
                state.name,
                verdict,
                state.backtrack_count,
                f"#{state.skipped_by.run_number}" if state.skipped_by else "",
                ", ".join(f"`{f}`" for f in state.matched_files or []),
            )
        )
    return tabulate(
        rows,
        headers=("Filter", "Verdict", "Distance", "Skipped by", "Matched files"),
        tablefmt="github",
    )


def _changed_files_table(changed_files: List[List[str]]) -> str:
    rows = [
        (distance, "<br>".join(f"`{f}`" for f in files) or "*no files*")
        for distance, files in enumerate(changed_files)
    ]
    return tabulate(rows, headers=("Distance", "Changed files"), tablefmt="github")


def render_summary(evaluation: Evaluation, now: Optional[datetime] = None) -> str:
    lines = ["## Skip decision", ""]

    if evaluation.failure is not None:
        failure: HardFailure = evaluation.failure
        lines += [
            ":x: **Failed**: identical content failed before in "
            + _run_link(failure.failed_run, now),
            "",
            failure.message,
        ]
    else:
        decision = evaluation.decision
        icon = ":fast_forward:" if decision.should_skip else ":arrow_forward:"
        lines += [
            tabulate(
                [
                    (
                        f"{icon} `{str(decision.should_skip).lower()}`",
                        f"`{decision.reason.value}`",
                    )
                ],
                headers=("Should skip", "Reason"),
                tablefmt="github",
            )
        ]
        if decision.skipped_by is not None:
            lines += ["", "Skipped by " + _run_link(decision.skipped_by, now)]
        if decision.paths_result is not None:
            lines += ["", "### Paths result", "", _paths_table(decision)]
        if decision.changed_files:
            lines += [
                "",
                "<details><summary>Changed files</summary>",
                "",
                _changed_files_table(decision.changed_files),
                "",
                "</details>",
            ]

    report = evaluation.cancel_report
    if report.cancelled or report.failed:
        lines += ["", "### Cancelled runs", ""]
        lines += [f"- :stop_sign: {_run_link(r, now)}" for r in report.cancelled]
        lines += [f"- :warning: failed to cancel {_run_link(r, now)}" for r in report.failed]

    return "\n".join(lines) + "\n"


def write_summary(path: str, summary: str) -> None:
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(summary)
