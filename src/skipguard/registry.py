from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Iterable, List, Optional

import aiohttp
from gidgethub import GitHubException
import pydantic

from skipguard.errors import MissingIdentity
from skipguard.github.model import ActionsRun, Commit, RunConclusion, RunStatus
from skipguard.ledger import MemoLedger

logger = logging.getLogger("skipguard")


class WorkflowRun(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True)

    id: int
    run_number: int
    event: str
    tree_hash: str
    commit_hash: str
    status: Optional[RunStatus] = None
    conclusion: Optional[RunConclusion] = None
    html_url: str
    branch: Optional[str] = None
    repo: Optional[str] = None
    workflow_id: int
    created_at: datetime

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def is_success(self) -> bool:
        return self.is_completed and self.conclusion == "success"

    @property
    def is_failure(self) -> bool:
        return self.is_completed and self.conclusion == "failure"

    @property
    def is_pull_request(self) -> bool:
        return self.event == "pull_request"

    def __str__(self) -> str:
        return f"Run({self.id}, #{self.run_number}, {self.html_url})"

    @classmethod
    def from_actions_run(cls, run: ActionsRun, tree_hash: str) -> "WorkflowRun":
        if run.workflow_id is None:
            raise MissingIdentity(f"Run {run.id} does not carry a workflow id")
        return cls(
            id=run.id,
            run_number=run.run_number,
            event=run.event,
            tree_hash=tree_hash,
            commit_hash=run.head_sha,
            status=run.status,
            conclusion=run.conclusion,
            html_url=run.html_url,
            branch=run.head_branch,
            # head_repository is missing for runs of deleted forks
            repo=run.head_repository.full_name if run.head_repository else None,
            workflow_id=run.workflow_id,
            created_at=run.created_at,
        )


@dataclass(frozen=True)
class CommitRecord:
    sha: str
    tree_sha: str
    # None if the API did not report the changed files
    files: Optional[List[str]]
    parent: Optional[str]
    html_url: Optional[str] = None

    @classmethod
    def from_commit(cls, commit: Commit) -> "CommitRecord":
        files = None
        if commit.files is not None:
            files = [f.filename for f in commit.files]
        return cls(
            sha=commit.sha,
            tree_sha=commit.commit.tree.sha,
            files=files,
            parent=commit.parents[0].sha if commit.parents else None,
            html_url=commit.html_url,
        )


def _sort_key(run: WorkflowRun):
    return (run.created_at, run.id)


@dataclass
class RunRegistry:
    current: WorkflowRun
    all_runs: List[WorkflowRun]
    older_runs: List[WorkflowRun]
    ledger: MemoLedger = field(default_factory=MemoLedger)

    @classmethod
    def build(
        cls,
        current: ActionsRun,
        listing: Iterable[ActionsRun],
        ledger: Optional[MemoLedger] = None,
    ) -> "RunRegistry":
        ledger = ledger if ledger is not None else MemoLedger()

        if current.tree_hash is None:
            raise MissingIdentity(
                f"Could not find the tree hash of run {current.id} "
                f"(Workflow ID: {current.workflow_id}, Name: {current.name}, "
                f"Head Branch: {current.head_branch}, Head SHA: {current.head_sha}). "
                "This might be a run associated with a headless or removed commit."
            )
        if current.head_repository is None or not current.head_repository.full_name:
            raise MissingIdentity(
                f"Could not find the head repository of run {current.id}, "
                "runs of deleted forks cannot be compared with other runs"
            )
        current_run = WorkflowRun.from_actions_run(current, current.tree_hash)

        all_runs: List[WorkflowRun] = []
        for run in listing:
            if run.id == current_run.id:
                continue
            if run.tree_hash is None or run.workflow_id is None:
                logger.info(
                    "Ignoring run %s without head commit, the commit was most likely removed",
                    run.html_url,
                )
                continue
            all_runs.append(WorkflowRun.from_actions_run(run, run.tree_hash))

        all_runs.sort(key=_sort_key)
        # strictly older runs only, runs created concurrently are not safe to compare
        older_runs = [r for r in all_runs if r.created_at < current_run.created_at]

        logger.debug(
            "Have %d other runs, %d of them older, %d ledger entries",
            len(all_runs),
            len(older_runs),
            len(ledger),
        )
        return cls(
            current=current_run,
            all_runs=all_runs,
            older_runs=older_runs,
            ledger=ledger,
        )

    @property
    def known_run_ids(self) -> List[int]:
        return [self.current.id] + [r.id for r in self.all_runs]

    def effective_tree_hash(self, run: WorkflowRun) -> Optional[str]:
        """Tree hash of the content a run actually checked out.

        Pull request runs check out the merge commit, whose tree is only known
        through the ledger. Without an entry they cannot be compared.
        """
        if run.is_pull_request:
            return self.ledger.tree_override(run.id)
        return run.tree_hash

    def find_successful_run(self, tree_hash: Optional[str]) -> Optional[WorkflowRun]:
        if not tree_hash:
            return None
        for run in self.older_runs:
            if run.is_success and self.effective_tree_hash(run) == tree_hash:
                return run
        return None

    def find_failed_run(self, tree_hash: Optional[str]) -> Optional[WorkflowRun]:
        if not tree_hash:
            return None
        for run in self.older_runs:
            if run.is_failure and self.effective_tree_hash(run) == tree_hash:
                return run
        return None


async def resolve_merge_tree(api, registry: RunRegistry, sha: Optional[str]) -> None:
    """Store the merge commit tree of a pull request run in the ledger.

    Re-run attempts of the same run find the tree already in the ledger and
    do not query the API again.
    """
    current = registry.current
    if not current.is_pull_request:
        return
    if registry.ledger.tree_override(current.id) is not None:
        logger.debug("Tree of merge commit for run %d known from ledger", current.id)
        return
    if not sha:
        logger.warning("No merge commit sha available for pull request run")
        return
    try:
        commit = await api.get_commit(sha)
    except (GitHubException, aiohttp.ClientError) as e:
        logger.warning("Failed to retrieve merge commit %s: %s", sha, e)
        return
    logger.info("Pull request run checks out tree %s", commit.commit.tree.sha)
    registry.ledger.set_tree_override(current.id, commit.commit.tree.sha)
