from __future__ import annotations

import logging
from typing import List, Optional, Protocol

import aiohttp
import diskcache
from gidgethub import GitHubException

from skipguard.errors import LedgerFormatError
from skipguard.github.api import API
from skipguard.github.artifacts import ArtifactUploader, ArtifactUploadError
from skipguard.ledger import LedgerData, decode_blob, encode_blob

logger = logging.getLogger("skipguard")

_REMOTE_ERRORS = (GitHubException, aiohttp.ClientError, ArtifactUploadError)


def ledger_name(workflow_id: int, job: str, action: str) -> str:
    return f"skipguard-{workflow_id}-{job}-{action}"


class LedgerStore(Protocol):
    name: str

    async def load(self) -> Optional[LedgerData]: ...

    async def save(self, data: LedgerData) -> None: ...


class ArtifactLedgerStore:
    """Ledger kept as a workflow artifact, newest artifact wins."""

    def __init__(
        self,
        api: API,
        name: str,
        *,
        uploader: Optional[ArtifactUploader] = None,
        retention_days: int = 60,
        keep_artifacts: int = 4,
    ):
        self.api = api
        self.name = name
        self.uploader = uploader
        self.retention_days = retention_days
        self.keep_artifacts = keep_artifacts
        self._artifact_ids: List[int] = []
        self._unreadable = False

    async def load(self) -> Optional[LedgerData]:
        try:
            artifacts = await self.api.list_artifacts(self.name)
            self._artifact_ids = [a.id for a in artifacts]
            if len(artifacts) == 0:
                logger.info("No ledger artifact %s found", self.name)
                return None
            latest = artifacts[0]
            logger.info(
                "Got ledger data from %s",
                f"run {latest.workflow_run.id}"
                if latest.workflow_run and latest.workflow_run.id
                else "unknown run",
            )
            return decode_blob(await self.api.download_artifact(latest.id))
        except _REMOTE_ERRORS as e:
            logger.warning("Failed to get ledger data: %s", e)
            self._unreadable = True
        except LedgerFormatError as e:
            logger.warning("Ignoring ledger data: %s", e)
        return None

    async def save(self, data: LedgerData) -> None:
        if self.uploader is None:
            logger.warning(
                "Cannot upload ledger data, the Actions runtime token is not available"
            )
            return
        if self._unreadable:
            logger.warning(
                "Not replacing ledger %s, the stored data could not be read", self.name
            )
            return
        try:
            await self.uploader.upload(
                self.name, encode_blob(data), retention_days=self.retention_days
            )
        except _REMOTE_ERRORS as e:
            logger.warning("Failed to upload ledger data: %s", e)
            return

        # only after a successful upload, a few older blobs stay around for
        # concurrently running invocations that listed them already
        for artifact_id in self._artifact_ids[self.keep_artifacts :]:
            try:
                await self.api.delete_artifact(artifact_id)
            except _REMOTE_ERRORS as e:
                logger.warning("Failed to delete ledger artifact %d: %s", artifact_id, e)


class DiskLedgerStore:
    """Ledger kept in a local disk cache, for self-hosted runners."""

    def __init__(self, cache: diskcache.Cache, name: str, retention_days: int = 60):
        self.cache = cache
        self.name = name
        self.retention_days = retention_days

    async def load(self) -> Optional[LedgerData]:
        raw = self.cache.get(self.name)
        if raw is None:
            logger.info("No ledger %s in %s", self.name, self.cache.directory)
            return None
        try:
            return decode_blob(raw)
        except LedgerFormatError as e:
            logger.warning("Ignoring ledger data: %s", e)
            return None

    async def save(self, data: LedgerData) -> None:
        self.cache.set(
            self.name, encode_blob(data), expire=self.retention_days * 24 * 3600
        )
        logger.info("Stored ledger %s in %s", self.name, self.cache.directory)
