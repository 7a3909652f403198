import logging
from typing import List

import aiohttp
from gidgethub import GitHubException

from skipguard.decision.types import CancelReport, RunContext
from skipguard.metric import cancel_counter
from skipguard.registry import RunRegistry, WorkflowRun

logger = logging.getLogger("skipguard")


def find_cancel_victims(registry: RunRegistry) -> List[WorkflowRun]:
    current = registry.current
    victims = []
    for run in registry.older_runs:
        if run.is_completed:
            continue
        # runs with the same content are kept, a later run may skip on them
        if run.tree_hash == current.tree_hash:
            continue
        # ignore runs of other branches and of pull requests from forks
        if run.branch != current.branch or run.repo != current.repo:
            continue
        victims.append(run)
    return victims


async def cancel_outdated_runs(
    api, registry: RunRegistry, context: RunContext
) -> CancelReport:
    report = CancelReport()
    victims = find_cancel_victims(registry)
    if len(victims) == 0:
        logger.info("Did not find other workflow runs to be cancelled")
        return report

    for victim in victims:
        if context.dry_run:
            logger.info("Would cancel run %s (dry run)", victim.html_url)
            continue
        try:
            await api.cancel_workflow_run(victim.id)
        except (GitHubException, aiohttp.ClientError) as e:
            logger.warning("Failed to cancel run %s: %s", victim.html_url, e)
            cancel_counter.labels(result="failed").inc()
            report.failed.append(victim)
            continue
        logger.info("Cancelled run %s", victim.html_url)
        cancel_counter.labels(result="cancelled").inc()
        report.cancelled.append(victim)
    return report
