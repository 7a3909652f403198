import logging
from typing import Optional

from skipguard.decision.types import Decision, Outcome, Reason
from skipguard.model import ConcurrentSkipping
from skipguard.registry import RunRegistry, WorkflowRun

logger = logging.getLogger("skipguard")


def find_concurrent_run(
    registry: RunRegistry, policy: ConcurrentSkipping
) -> Optional[WorkflowRun]:
    current = registry.current
    concurrent_runs = [r for r in registry.all_runs if not r.is_completed]

    if len(concurrent_runs) == 0:
        logger.info("Did not find any concurrent workflow runs")
        return None

    if policy == ConcurrentSkipping.always:
        run = concurrent_runs[0]
        logger.info(
            "Skip execution because another instance of the same workflow is already running in %s",
            run.html_url,
        )
        return run

    if policy == ConcurrentSkipping.outdated_runs:
        for run in concurrent_runs:
            if run.created_at > current.created_at:
                logger.info(
                    "Skip execution because a newer instance of the same workflow is running in %s",
                    run.html_url,
                )
                return run

    elif policy == ConcurrentSkipping.same_content:
        for run in concurrent_runs:
            if run.tree_hash == current.tree_hash:
                logger.info(
                    "Skip execution because the exact same files are concurrently checked in run %s",
                    run.html_url,
                )
                return run

    elif policy == ConcurrentSkipping.same_content_newer:
        # of two concurrent runs with the same content the one with the lower
        # run number always proceeds
        for run in concurrent_runs:
            if run.tree_hash == current.tree_hash and run.run_number < current.run_number:
                logger.info(
                    "Skip execution because the exact same files are concurrently checked in older run %s",
                    run.html_url,
                )
                return run

    logger.info("Did not find any concurrent workflow runs that justify skipping")
    return None


def detect_concurrent_run(registry: RunRegistry, policy: ConcurrentSkipping) -> Outcome:
    if policy == ConcurrentSkipping.never:
        return Outcome.proceed()
    run = find_concurrent_run(registry, policy)
    if run is None:
        return Outcome.proceed()
    return Outcome.verdict(
        Decision(should_skip=True, reason=Reason.concurrent_skipping, skipped_by=run)
    )
