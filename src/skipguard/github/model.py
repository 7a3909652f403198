from datetime import datetime
from typing import List, Literal, Optional

import pydantic


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore")


RunStatus = Literal["queued", "in_progress", "completed", "waiting", "requested", "pending"]

RunConclusion = Literal[
    "success",
    "failure",
    "neutral",
    "cancelled",
    "skipped",
    "timed_out",
    "action_required",
    "stale",
    "startup_failure",
]


class HeadCommit(Model):
    id: str
    tree_id: Optional[str] = None


class HeadRepository(Model):
    id: int
    full_name: Optional[str] = None


class ActionsRun(Model):
    id: int
    name: Optional[str] = None
    head_sha: str
    head_branch: Optional[str] = None
    run_number: int
    event: str
    status: Optional[RunStatus] = None
    conclusion: Optional[RunConclusion] = None
    workflow_id: Optional[int] = None
    html_url: str
    created_at: datetime
    head_commit: Optional[HeadCommit] = None
    head_repository: Optional[HeadRepository] = None

    @property
    def tree_hash(self) -> Optional[str]:
        if self.head_commit is None:
            return None
        return self.head_commit.tree_id

    def __str__(self) -> str:
        return f"Run({self.id}, #{self.run_number}, {self.event})"


class Tree(Model):
    sha: str


class GitCommit(Model):
    tree: Tree


class CommitFile(Model):
    filename: str
    status: Optional[str] = None


class CommitParent(Model):
    sha: str


class Commit(Model):
    sha: str
    html_url: Optional[str] = None
    commit: GitCommit
    parents: List[CommitParent] = pydantic.Field(default_factory=list)
    files: Optional[List[CommitFile]] = None


class ArtifactWorkflowRun(Model):
    id: Optional[int] = None


class Artifact(Model):
    id: int
    name: str
    size_in_bytes: Optional[int] = None
    expired: bool = False
    created_at: Optional[datetime] = None
    workflow_run: Optional[ArtifactWorkflowRun] = None
