"""Tests for RemoteStore against the in-memory FakeDrime transport."""

import httpx
import pytest

from drime_sync.errors import ConfigurationError, RemoteError
from drime_sync.sync.remote_store import KIND_FILE, KIND_FOLDER, RemoteEntry, RemoteStore

from conftest import API_BASE, API_TOKEN


@pytest.fixture
def remote(fake_drime):
    return RemoteStore(lambda: API_TOKEN, base_url=API_BASE, transport=fake_drime.transport())


class TestRemoteEntry:

    def test_from_api(self):
        entry = RemoteEntry.from_api({
            "id": 42, "name": "a.enc", "type": "text", "file_size": 12,
            "created_at": "2024-01-01T00:00:00Z", "updated_at": None, "parent_id": 7,
        })
        assert entry.id == "42"
        assert entry.kind == KIND_FILE
        assert entry.size_bytes == 12
        assert entry.parent_id == "7"

    def test_folder_kind(self):
        entry = RemoteEntry.from_api({"id": 1, "name": "F", "type": "folder"})
        assert entry.is_folder
        assert entry.kind == KIND_FOLDER
        assert entry.parent_id is None


class TestEnsureFolder:

    @pytest.mark.asyncio
    async def test_three_calls_create_exactly_one_folder(self, remote, fake_drime):
        ids = [await remote.ensure_folder("X") for _ in range(3)]
        assert len(set(ids)) == 1
        assert len(fake_drime.folders("X")) == 1
        creates = [r for r in fake_drime.requests if r == ("POST", "/file-entries/folder")]
        assert len(creates) == 1

    @pytest.mark.asyncio
    async def test_reuses_existing_folder(self, remote, fake_drime):
        existing = fake_drime.add_entry("X", kind="folder")
        assert await remote.ensure_folder("X") == str(existing["id"])

    @pytest.mark.asyncio
    async def test_ignores_file_with_same_name(self, remote, fake_drime):
        fake_drime.add_entry("X", kind="text")
        folder_id = await remote.ensure_folder("X")
        assert fake_drime.entries[folder_id]["type"] == "folder"

    @pytest.mark.asyncio
    async def test_create_failure_raises_remote_error(self, remote, fake_drime):
        fake_drime.fail("POST", "/file-entries/folder", 500)
        with pytest.raises(RemoteError) as exc_info:
            await remote.ensure_folder("X")
        assert exc_info.value.status_code == 500


class TestFileOperations:

    @pytest.mark.asyncio
    async def test_upload_list_download(self, remote, fake_drime):
        folder_id = await remote.ensure_folder("Backups")
        entry = await remote.upload(folder_id, "backup-1.enc", b"ciphertext-bytes")

        assert entry.name == "backup-1.enc"
        assert entry.parent_id == folder_id
        assert entry.size_bytes == len(b"ciphertext-bytes")

        listed = await remote.list(folder_id)
        assert [e.id for e in listed] == [entry.id]
        assert await remote.download(entry.id) == b"ciphertext-bytes"

    @pytest.mark.asyncio
    async def test_upload_same_name_creates_new_entry(self, remote):
        folder_id = await remote.ensure_folder("Backups")
        first = await remote.upload(folder_id, "same.enc", b"1")
        second = await remote.upload(folder_id, "same.enc", b"2")
        assert first.id != second.id
        assert len(await remote.list(folder_id)) == 2

    @pytest.mark.asyncio
    async def test_delete(self, remote, fake_drime):
        folder_id = await remote.ensure_folder("Backups")
        entry = await remote.upload(folder_id, "gone.enc", b"x")
        await remote.delete(entry.id)
        assert await remote.list(folder_id) == []

    @pytest.mark.asyncio
    async def test_delete_unknown_id_raises(self, remote):
        with pytest.raises(RemoteError) as exc_info:
            await remote.delete("999999")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_download_unknown_id_raises(self, remote):
        with pytest.raises(RemoteError) as exc_info:
            await remote.download("999999")
        assert exc_info.value.status_code == 404


class TestErrors:

    @pytest.mark.asyncio
    async def test_bad_token_is_remote_error_401(self, fake_drime):
        remote = RemoteStore(lambda: "wrong", base_url=API_BASE, transport=fake_drime.transport())
        with pytest.raises(RemoteError) as exc_info:
            await remote.test_connection()
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_token_fails_before_any_request(self, fake_drime):
        def no_token():
            raise ConfigurationError("No API token configured.")

        remote = RemoteStore(no_token, base_url=API_BASE, transport=fake_drime.transport())
        with pytest.raises(ConfigurationError):
            await remote.list_entries()
        assert fake_drime.requests == []

    @pytest.mark.asyncio
    async def test_network_failure_is_surfaced_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        remote = RemoteStore(lambda: API_TOKEN, base_url=API_BASE,
                             transport=httpx.MockTransport(handler))
        with pytest.raises(RemoteError) as exc_info:
            await remote.list_entries()
        assert exc_info.value.status_code is None
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_unexpected_create_response_shape(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json={"data": []})
            return httpx.Response(200, json={"ok": True})

        remote = RemoteStore(lambda: API_TOKEN, base_url=API_BASE,
                             transport=httpx.MockTransport(handler))
        with pytest.raises(RemoteError):
            await remote.ensure_folder("X")
