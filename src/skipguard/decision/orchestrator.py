from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from typing import Callable, Optional

import aiohttp
from gidgethub import GitHubException

from skipguard.decision.cancel import cancel_outdated_runs
from skipguard.decision.concurrency import detect_concurrent_run
from skipguard.decision.duplicates import check_do_not_skip, detect_duplicate
from skipguard.decision.paths import detect_path_skipping
from skipguard.decision.types import (
    CancelReport,
    Decision,
    HardFailure,
    Outcome,
    Reason,
    RunContext,
)
from skipguard.errors import MissingIdentity
from skipguard.ledger import MemoLedger
from skipguard.metric import decision_counter, hard_failure_counter
from skipguard.model import Inputs
from skipguard.registry import RunRegistry, resolve_merge_tree
from skipguard.storage import LedgerStore

logger = logging.getLogger("skipguard")


@dataclass(frozen=True)
class Evaluation:
    decision: Optional[Decision] = None
    failure: Optional[HardFailure] = None
    cancel_report: CancelReport = field(default_factory=CancelReport)


class DecisionOrchestrator:
    def __init__(
        self,
        *,
        inputs: Inputs,
        context: RunContext,
        api,
        registry: RunRegistry,
        ledger_store: Optional[LedgerStore] = None,
        max_ledger_entries: int = 100,
        prune_ledger: bool = True,
    ):
        self.inputs = inputs
        self.context = context
        self.api = api
        self.registry = registry
        self.ledger_store = ledger_store
        self.max_ledger_entries = max_ledger_entries
        # without a complete listing, unknown runs may still exist
        self.prune_ledger = prune_ledger

    async def evaluate(self) -> Outcome:
        """Run the checks in order, the first conclusive outcome wins."""
        inputs = self.inputs
        registry = self.registry

        outcome = check_do_not_skip(registry, inputs.do_not_skip)
        if outcome.conclusive:
            return outcome

        if inputs.skip_after_successful_duplicate:
            outcome = detect_duplicate(registry)
            if outcome.conclusive:
                return outcome

        outcome = detect_concurrent_run(registry, inputs.concurrent_skipping)
        if outcome.conclusive:
            return outcome

        if inputs.has_path_filters:
            return await detect_path_skipping(
                self.api, registry, inputs.path_filters()
            )

        logger.info("Do not skip execution because no transferable run could be found")
        return Outcome.verdict(
            Decision(should_skip=False, reason=Reason.no_transferable_run)
        )

    async def run(self) -> Evaluation:
        started = time.monotonic()
        current = self.registry.current
        logger.info(
            "Evaluating run %s event=%s tree=%s", current, current.event, current.tree_hash
        )

        cancel_report = CancelReport()
        if self.inputs.cancel_others:
            cancel_report = await cancel_outdated_runs(
                self.api, self.registry, self.context
            )

        outcome = await self.evaluate()

        if outcome.failure is not None:
            hard_failure_counter.inc()
            self.registry.ledger.record_result(current.id, None)
        else:
            decision = outcome.decision
            decision_counter.labels(
                reason=decision.reason.value, should_skip=str(decision.should_skip)
            ).inc()
            self.registry.ledger.record_result(current.id, decision.to_entry())

        await self.persist_ledger()

        logger.info(
            "Evaluation done run=%d result=%s duration_ms=%.1f",
            current.id,
            "failure"
            if outcome.failure is not None
            else f"{outcome.decision.reason.value}/{outcome.decision.should_skip}",
            (time.monotonic() - started) * 1000.0,
        )
        return Evaluation(
            decision=outcome.decision,
            failure=outcome.failure,
            cancel_report=cancel_report,
        )

    async def persist_ledger(self) -> None:
        if self.ledger_store is None:
            return
        if self.context.dry_run:
            logger.info("Not persisting ledger (dry run)")
            return
        keep_ids = self.registry.known_run_ids if self.prune_ledger else None
        data = self.registry.ledger.pruned(keep_ids, self.max_ledger_entries)
        logger.debug("Persisting %d ledger entries", len(data.r))
        await self.ledger_store.save(data)


async def evaluate_run(
    api,
    *,
    inputs: Inputs,
    context: RunContext,
    make_store: Callable[[int], LedgerStore],
    page_size: int = 100,
    max_ledger_entries: int = 100,
) -> Evaluation:
    """Gather the runs of the current workflow and decide on the current run."""
    current = await api.get_workflow_run(context.run_id)
    if current.workflow_id is None:
        raise MissingIdentity(f"Did not find the workflow id of run {current.id}")

    ledger_store = make_store(current.workflow_id)
    ledger = MemoLedger.from_data(await ledger_store.load())

    listed = True
    try:
        listing = await api.list_workflow_runs(current.workflow_id, per_page=page_size)
    except (GitHubException, aiohttp.ClientError) as e:
        logger.warning("Failed to list workflow runs, comparing against none: %s", e)
        listing = []
        listed = False

    registry = RunRegistry.build(current, listing, ledger)
    await resolve_merge_tree(api, registry, context.sha)

    orchestrator = DecisionOrchestrator(
        inputs=inputs,
        context=context,
        api=api,
        registry=registry,
        ledger_store=ledger_store,
        max_ledger_entries=max_ledger_entries,
        prune_ledger=listed,
    )
    return await orchestrator.run()
