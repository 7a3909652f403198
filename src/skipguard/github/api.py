import logging
from typing import List, Optional

import aiohttp
from gidgethub import sansio
from gidgethub.abc import GitHubAPI

from skipguard.github.model import ActionsRun, Artifact, Commit
from skipguard.metric import record_api_call

logger = logging.getLogger("skipguard")


class API:
    gh: GitHubAPI
    repo: str

    call_count: int

    def __init__(
        self,
        gh: GitHubAPI,
        repo: str,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        token: Optional[str] = None,
        base_url: str = sansio.DOMAIN,
    ):
        self.gh = gh
        self.repo = repo
        self.session = session
        self.token = token
        self.base_url = base_url
        self.call_count = 0

    @property
    def repo_url(self) -> str:
        return f"/repos/{self.repo}"

    def _count(self, url: str) -> None:
        self.call_count += 1
        record_api_call(url)

    async def get_workflow_run(self, run_id: int) -> ActionsRun:
        url = f"{self.repo_url}/actions/runs/{run_id}"
        self._count(url)
        logger.debug("Get workflow run %s", url)
        return ActionsRun.model_validate(await self.gh.getitem(url))

    async def list_workflow_runs(
        self, workflow_id: int, per_page: int = 100
    ) -> List[ActionsRun]:
        url = f"{self.repo_url}/actions/workflows/{workflow_id}/runs?per_page={per_page}"
        self._count(url)
        logger.debug("List workflow runs %s", url)
        data = await self.gh.getitem(url)
        return [ActionsRun.model_validate(item) for item in data["workflow_runs"]]

    async def get_commit(self, ref: str) -> Commit:
        url = f"{self.repo_url}/commits/{ref}"
        self._count(url)
        logger.debug("Get commit %s", url)
        return Commit.model_validate(await self.gh.getitem(url))

    async def cancel_workflow_run(self, run_id: int) -> None:
        url = f"{self.repo_url}/actions/runs/{run_id}/cancel"
        self._count(url)
        logger.debug("Cancel workflow run %s", url)
        await self.gh.post(url, data={})

    async def list_artifacts(self, name: str, per_page: int = 100) -> List[Artifact]:
        url = f"{self.repo_url}/actions/artifacts?name={name}&per_page={per_page}"
        self._count(url)
        logger.debug("List artifacts %s", url)
        data = await self.gh.getitem(url)
        artifacts = [Artifact.model_validate(item) for item in data["artifacts"]]
        # newest first
        return sorted(
            (a for a in artifacts if a.name == name and not a.expired),
            key=lambda a: a.id,
            reverse=True,
        )

    async def download_artifact(self, artifact_id: int) -> bytes:
        if self.session is None:
            raise RuntimeError("Downloading artifacts requires an aiohttp session")
        url = f"{self.repo_url}/actions/artifacts/{artifact_id}/zip"
        self._count(url)
        logger.debug("Download artifact %s", url)
        headers = sansio.create_headers(self.gh.requester, oauth_token=self.token)
        # the API answers with a redirect to the blob storage, aiohttp drops
        # the authorization header when following it to another host
        async with self.session.get(
            sansio.format_url(url, {}, base_url=self.base_url), headers=headers
        ) as response:
            response.raise_for_status()
            return await response.read()

    async def delete_artifact(self, artifact_id: int) -> None:
        url = f"{self.repo_url}/actions/artifacts/{artifact_id}"
        self._count(url)
        logger.debug("Delete artifact %s", url)
        await self.gh.delete(url)
