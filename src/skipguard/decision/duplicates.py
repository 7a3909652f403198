import logging
from typing import Collection

from skipguard.decision.types import Decision, HardFailure, Outcome, Reason
from skipguard.registry import RunRegistry

logger = logging.getLogger("skipguard")


def check_do_not_skip(registry: RunRegistry, do_not_skip: Collection[str]) -> Outcome:
    event = registry.current.event
    if event in do_not_skip:
        logger.info(
            "Do not skip execution because the workflow was triggered with '%s'", event
        )
        return Outcome.verdict(Decision(should_skip=False, reason=Reason.do_not_skip))
    return Outcome.proceed()


def detect_duplicate(registry: RunRegistry) -> Outcome:
    """Look for older runs that checked the exact same content.

    A successful one allows skipping. A failed one, without any successful
    one, fails this run as well: the content is known to be bad and re-running
    it requires an explicit manual trigger.
    """
    tree_hash = registry.effective_tree_hash(registry.current)
    if tree_hash is None:
        logger.info("Tree hash of the checked out content is unknown")
        return Outcome.proceed()

    successful = registry.find_successful_run(tree_hash)
    if successful is not None:
        logger.info(
            "Skip execution because the exact same files have been successfully checked in run %s",
            successful.html_url,
        )
        return Outcome.verdict(
            Decision(
                should_skip=True,
                reason=Reason.skip_after_successful_duplicate,
                skipped_by=successful,
            )
        )

    failed = registry.find_failed_run(tree_hash)
    if failed is not None:
        message = (
            f"Trigger a failure because {failed.html_url} has failed with the exact same files. "
            "You can use 'workflow_dispatch' to manually enforce a re-run."
        )
        logger.info("Found failed duplicate run %s", failed.html_url)
        return Outcome.fail(HardFailure(message=message, failed_run=failed))

    logger.info("Did not find a duplicate run for tree %s", tree_hash)
    return Outcome.proceed()
