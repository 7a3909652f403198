import diskcache
import pytest

from skipguard.github.artifacts import ArtifactUploadError
from skipguard.github.model import Artifact
from skipguard.ledger import LedgerData, LedgerEntry, encode_blob
from skipguard.storage import ArtifactLedgerStore, DiskLedgerStore, ledger_name

from fakes import not_found

NAME = "skipguard-123-build-check"


class ArtifactAPI:
    def __init__(self, blobs, fail_list=False, fail_delete=()):
        # artifact id -> blob
        self.blobs = blobs
        self.fail_list = fail_list
        self.fail_delete = set(fail_delete)
        self.downloaded = []
        self.deleted = []

    async def list_artifacts(self, name):
        if self.fail_list:
            raise not_found()
        return [
            Artifact(id=i, name=name, workflow_run={"id": i * 10})
            for i in sorted(self.blobs, reverse=True)
        ]

    async def download_artifact(self, artifact_id):
        self.downloaded.append(artifact_id)
        return self.blobs[artifact_id]

    async def delete_artifact(self, artifact_id):
        self.deleted.append(artifact_id)
        if artifact_id in self.fail_delete:
            raise not_found()


class Uploader:
    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = []

    async def upload(self, name, content, retention_days):
        if self.fail:
            raise ArtifactUploadError("rejected")
        self.uploads.append((name, content, retention_days))
        return 99


def _data(tree):
    return LedgerData(r={1: LedgerEntry(t=tree)})


def test_ledger_name():
    assert ledger_name(123, "build", "check") == NAME


@pytest.mark.asyncio
async def test_artifact_store_loads_newest():
    api = ArtifactAPI({1: encode_blob(_data("old")), 2: encode_blob(_data("new"))})
    store = ArtifactLedgerStore(api, NAME)

    data = await store.load()

    assert data.r[1].t == "new"
    assert api.downloaded == [2]


@pytest.mark.asyncio
async def test_artifact_store_without_data():
    assert await ArtifactLedgerStore(ArtifactAPI({}), NAME).load() is None
    assert await ArtifactLedgerStore(ArtifactAPI({}, fail_list=True), NAME).load() is None
    assert await ArtifactLedgerStore(ArtifactAPI({1: b"garbage"}), NAME).load() is None


@pytest.mark.asyncio
async def test_artifact_store_save_deletes_old_artifacts():
    api = ArtifactAPI({i: encode_blob(_data(str(i))) for i in range(1, 7)})
    uploader = Uploader()
    store = ArtifactLedgerStore(
        api, NAME, uploader=uploader, retention_days=5, keep_artifacts=4
    )
    await store.load()

    await store.save(_data("x"))

    assert len(uploader.uploads) == 1
    name, content, retention_days = uploader.uploads[0]
    assert name == NAME
    assert content == encode_blob(_data("x"))
    assert retention_days == 5
    assert api.deleted == [2, 1]


@pytest.mark.asyncio
async def test_artifact_store_save_failures():
    api = ArtifactAPI({i: encode_blob(_data(str(i))) for i in range(1, 7)}, fail_delete=[2])
    store = ArtifactLedgerStore(api, NAME, uploader=Uploader(fail=True))
    await store.load()
    await store.save(_data("x"))
    # nothing is deleted without a successful upload
    assert api.deleted == []

    store = ArtifactLedgerStore(api, NAME, uploader=Uploader())
    await store.load()
    await store.save(_data("x"))
    assert api.deleted == [2, 1]

    store = ArtifactLedgerStore(api, NAME)
    await store.save(_data("x"))


@pytest.mark.asyncio
async def test_disk_store(tmp_path):
    with diskcache.Cache(str(tmp_path)) as cache:
        store = DiskLedgerStore(cache, NAME)
        assert await store.load() is None

        await store.save(_data("tree"))
        assert (await store.load()).r[1].t == "tree"

        other = DiskLedgerStore(cache, "skipguard-456--")
        assert await other.load() is None

        cache.set(NAME, b"garbage")
        assert await store.load() is None


@pytest.mark.asyncio
async def test_artifact_store_keeps_unreadable_ledger():
    api = ArtifactAPI({i: encode_blob(_data(str(i))) for i in range(1, 7)}, fail_list=True)
    uploader = Uploader()
    store = ArtifactLedgerStore(api, NAME, uploader=uploader)

    assert await store.load() is None
    await store.save(_data("x"))

    assert uploader.uploads == []
    assert api.deleted == []


@pytest.mark.asyncio
async def test_artifact_store_replaces_invalid_ledger():
    api = ArtifactAPI({1: b"garbage"})
    uploader = Uploader()
    store = ArtifactLedgerStore(api, NAME, uploader=uploader)

    assert await store.load() is None
    await store.save(_data("x"))

    assert len(uploader.uploads) == 1
