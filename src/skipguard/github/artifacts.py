from datetime import datetime, timedelta, timezone
import hashlib
import logging
from typing import Any, Dict, Tuple

import aiohttp
import jwt

from skipguard.metric import record_api_call

logger = logging.getLogger("skipguard")

_SERVICE = "twirp/github.actions.results.api.v1.ArtifactService"


class ArtifactUploadError(Exception):
    pass


def backend_ids_from_token(runtime_token: str) -> Tuple[str, str]:
    """Extract the workflow run and job backend ids from the runtime token.

    The token carries a space separated ``scp`` claim, one of whose entries
    has the form ``Actions.Results:<run backend id>:<job backend id>``.
    """
    claims = jwt.decode(runtime_token, options={"verify_signature": False})
    for scope in str(claims.get("scp", "")).split(" "):
        parts = scope.split(":")
        if len(parts) == 3 and parts[0] == "Actions.Results":
            return parts[1], parts[2]
    raise ArtifactUploadError("Runtime token does not carry a results scope")


class ArtifactUploader:
    """Uploads a single-file artifact through the Actions results service."""

    def __init__(
        self, session: aiohttp.ClientSession, runtime_token: str, results_url: str
    ):
        self.session = session
        self.runtime_token = runtime_token
        self.results_url = results_url.rstrip("/")

    async def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.results_url}/{_SERVICE}/{method}"
        record_api_call(method)
        async with self.session.post(
            url,
            json=payload,
            headers={"Authorization": f"Bearer {self.runtime_token}"},
        ) as response:
            if response.status >= 300:
                raise ArtifactUploadError(
                    f"{method} failed with status {response.status}: {await response.text()}"
                )
            data = await response.json(content_type=None)
        if not data.get("ok"):
            raise ArtifactUploadError(f"{method} was rejected: {data}")
        return data

    async def upload(self, name: str, content: bytes, retention_days: int) -> int:
        run_id, job_id = backend_ids_from_token(self.runtime_token)
        expires_at = datetime.now(timezone.utc) + timedelta(days=retention_days)

        created = await self._call(
            "CreateArtifact",
            {
                "workflow_run_backend_id": run_id,
                "workflow_job_run_backend_id": job_id,
                "name": name,
                "version": 4,
                "expires_at": expires_at.strftime("%Y-%m-%dT%H:%M:%S.000Z"),
            },
        )

        logger.debug("Uploading %d bytes for artifact %s", len(content), name)
        async with self.session.put(
            created["signed_upload_url"],
            data=content,
            headers={"x-ms-blob-type": "BlockBlob", "Content-Type": "application/zip"},
        ) as response:
            if response.status >= 300:
                raise ArtifactUploadError(
                    f"Blob upload failed with status {response.status}"
                )

        finalized = await self._call(
            "FinalizeArtifact",
            {
                "workflow_run_backend_id": run_id,
                "workflow_job_run_backend_id": job_id,
                "name": name,
                "size": str(len(content)),
                "hash": f"sha256:{hashlib.sha256(content).hexdigest()}",
            },
        )
        artifact_id = int(finalized["artifact_id"])
        logger.info("Uploaded artifact %s (%d)", name, artifact_id)
        return artifact_id
