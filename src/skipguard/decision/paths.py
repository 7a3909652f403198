from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
import logging
from typing import Dict, List, Optional

import aiohttp
from gidgethub import GitHubException

from skipguard.decision.types import Decision, FilterState, Outcome, PathsResult, Reason
from skipguard.metric import backtrack_depth
from skipguard.model import GLOBAL_FILTER, PathFilter
from skipguard.registry import CommitRecord, RunRegistry, WorkflowRun

logger = logging.getLogger("skipguard")

# backtracking is expected to stop after 1-3 commits, this is a safety net
MAX_BACKTRACK_DISTANCE = 50


def path_matches(path: str, pattern: str) -> bool:
    # fnmatch wildcards cross directory boundaries and match dotfiles
    if fnmatchcase(path, pattern):
        return True
    return pattern.startswith("**/") and fnmatchcase(path, pattern[3:])


def match_files(changed_files: List[str], patterns: List[str]) -> List[str]:
    return [f for f in changed_files if any(path_matches(f, p) for p in patterns)]


def is_commit_ignored(changed_files: Optional[List[str]], paths_ignore: List[str]) -> bool:
    if changed_files is None or len(paths_ignore) == 0:
        return False
    return all(any(path_matches(f, p) for p in paths_ignore) for f in changed_files)


@dataclass
class BacktrackResult:
    paths_result: PathsResult
    changed_files: List[List[str]]


class PathBacktracker:
    """Walk the first-parent history of the current commit once, resolving all
    path filters at the same time.

    A filter resolves to *skip* as soon as a visited ancestor has the tree of
    a successful older run while all commits in between were ignorable for the
    filter. It resolves to *don't skip* on the first relevant change, when its
    backtracking limit is reached, or when the history cannot be walked further.
    """

    def __init__(
        self,
        api,
        registry: RunRegistry,
        filters: Dict[str, PathFilter],
        max_distance: int = MAX_BACKTRACK_DISTANCE,
    ):
        self.api = api
        self.registry = registry
        self.filters = filters
        self.max_distance = max_distance

    async def fetch_commit(self, sha: str) -> Optional[CommitRecord]:
        try:
            return CommitRecord.from_commit(await self.api.get_commit(sha))
        except (GitHubException, aiohttp.ClientError) as e:
            logger.warning("Failed to retrieve commit %s: %s", sha, e)
            return None

    def _resolve_remaining(self, result: PathsResult, distance: int, why: str) -> None:
        for state in result.unresolved():
            logger.info("Stop backtracking for '%s' because %s", state.name, why)
            result.resolve(state.name, should_skip=False, distance=distance)

    def _evaluate(
        self,
        result: PathsResult,
        state: FilterState,
        commit: CommitRecord,
        distance: int,
        successful_run: Optional[WorkflowRun],
    ) -> None:
        name = state.name
        path_filter = self.filters[name]

        if successful_run is not None:
            result.resolve(
                name, should_skip=True, distance=distance, skipped_by=successful_run
            )
            logger.info(
                "Skip '%s' because all changes since run %s are in ignored or skipped paths",
                name,
                successful_run.html_url,
            )
            return

        if path_filter.bound_reached(distance):
            result.resolve(name, should_skip=False, distance=distance)
            logger.info(
                "Stop backtracking for '%s' because the defined limit has been reached",
                name,
            )
            return

        if is_commit_ignored(commit.files, path_filter.paths_ignore):
            logger.info(
                "Commit %s is path-ignored for '%s': all of %s match against patterns %s",
                commit.html_url or commit.sha,
                name,
                commit.files,
                path_filter.paths_ignore,
            )
            return

        if len(path_filter.paths) > 0 and commit.files is not None:
            matches = match_files(commit.files, path_filter.paths)
            if len(matches) == 0:
                logger.info(
                    "Commit %s is path-skipped for '%s': none of %s matches against patterns %s",
                    commit.html_url or commit.sha,
                    name,
                    commit.files,
                    path_filter.paths,
                )
                return
            state.matched_files = matches

        result.resolve(name, should_skip=False, distance=distance)
        logger.info(
            "Stop backtracking for '%s' at commit %s because %s are not skippable "
            "against paths %s or paths_ignore %s",
            name,
            commit.html_url or commit.sha,
            "unknown files" if commit.files is None else commit.files,
            path_filter.paths,
            path_filter.paths_ignore,
        )

    async def run(self) -> BacktrackResult:
        result = PathsResult(list(self.filters))
        changed_files: List[List[str]] = []
        sha: str = self.registry.current.commit_hash
        distance = 0

        while len(result.unresolved()) > 0:
            commit = await self.fetch_commit(sha)
            if commit is None:
                self._resolve_remaining(
                    result, distance, f"commit {sha} could not be retrieved"
                )
                break
            changed_files.append(list(commit.files or []))

            # the current commit trivially matches the tree of the current run
            successful_run = None
            if distance > 0:
                successful_run = self.registry.find_successful_run(commit.tree_sha)

            for state in result.unresolved():
                self._evaluate(result, state, commit, distance, successful_run)

            if commit.parent is None:
                self._resolve_remaining(
                    result, distance, f"commit {commit.sha} has no parent"
                )
                break

            distance += 1
            sha = commit.parent
            if distance >= self.max_distance and len(result.unresolved()) > 0:
                logger.warning(
                    "Aborted commit-backtracking due to bad performance - "
                    "Did you push an excessive number of ignored-path commits?"
                )
                self._resolve_remaining(result, distance, "the maximum distance was reached")
                break

        backtrack_depth.observe(len(changed_files))
        return BacktrackResult(paths_result=result, changed_files=changed_files)


async def detect_path_skipping(
    api, registry: RunRegistry, filters: Dict[str, PathFilter]
) -> Outcome:
    backtrack = await PathBacktracker(api, registry, filters).run()
    paths_result = backtrack.paths_result

    should_skip = False
    skipped_by = None
    if GLOBAL_FILTER in paths_result:
        global_state = paths_result[GLOBAL_FILTER]
        should_skip = bool(global_state.should_skip)
        skipped_by = global_state.skipped_by

    return Outcome.verdict(
        Decision(
            should_skip=should_skip,
            reason=Reason.paths,
            skipped_by=skipped_by,
            paths_result=paths_result,
            changed_files=backtrack.changed_files,
        )
    )
