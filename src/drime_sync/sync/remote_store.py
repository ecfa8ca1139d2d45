# Remote object store client (Drime file-entries API)
#
# Thin async wrapper over the hierarchical object store:
#   GET  /file-entries[?parent_id=]       list entries
#   POST /file-entries/folder             create folder {name, parent_id}
#   POST /file-entries (multipart)        upload file (+ optional parent_id)
#   GET  /file-entries/{id}/download      raw bytes
#   POST /file-entries/delete             {entry_ids: [id]}
#
# Every non-success response becomes RemoteError.  Nothing is retried
# here: retry policy belongs to the injected httpx transport, if any.

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..errors import RemoteError
from ..settings import DEFAULT_API_BASE, DEFAULT_TIMEOUT_SEC

logger = logging.getLogger(__name__)

KIND_FOLDER = "folder"
KIND_FILE = "file"


@dataclass(frozen=True)
class RemoteEntry:
    """One entry in the object store, as returned by the server."""

    id: str
    name: str
    kind: str
    size_bytes: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    parent_id: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.kind == KIND_FOLDER

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteEntry":
        parent = data.get("parent_id")
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            kind=KIND_FOLDER if data.get("type") == KIND_FOLDER else KIND_FILE,
            size_bytes=int(data.get("file_size") or 0),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            parent_id=str(parent) if parent is not None else None,
        )


def _unwrap_entry(body: Any) -> Dict[str, Any]:
    """Pull the created entry out of a create/upload response."""
    if isinstance(body, dict):
        for key in ("fileEntry", "folder", "data"):
            entry = body.get(key)
            if isinstance(entry, dict) and "id" in entry:
                return entry
    raise RemoteError(None, "Unexpected response shape from object store")


class RemoteStore:
    """Async client for the remote object store.

    Args:
        token_provider: Callable returning the bearer token.  Called per
            request so credential changes take effect immediately; it
            should raise ConfigurationError when no token is set.
        base_url: API root, e.g. https://app.drime.cloud/api/v1.
        transport: Optional httpx transport (retries, mocking).
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        token_provider: Callable[[], str],
        base_url: str = DEFAULT_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_TIMEOUT_SEC,
    ):
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            transport=transport,
            timeout=timeout,
            headers={"User-Agent": "DrimeSync/0.3"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RemoteStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _headers(self, accept_json: bool = True) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self._token_provider()}"}
        if accept_json:
            headers["Accept"] = "application/json"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        accept_json: bool = True,
        **kwargs,
    ) -> httpx.Response:
        """Send one request; raise RemoteError unless the status is 2xx."""
        headers = self._headers(accept_json)
        try:
            resp = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("Object store request failed (%s %s): %s", method, path, exc)
            raise RemoteError(None, f"Failed to {action}: {exc}") from exc

        if not resp.is_success:
            detail = resp.text[:200] if resp.text else resp.reason_phrase
            logger.warning(
                "Object store returned %d for %s %s", resp.status_code, method, path
            )
            raise RemoteError(resp.status_code, f"Failed to {action}: {detail}")
        return resp

    @staticmethod
    def _json(resp: httpx.Response, action: str) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteError(resp.status_code, f"Failed to {action}: invalid JSON response") from exc

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def list_entries(self, parent_id: Optional[str] = None) -> List[RemoteEntry]:
        """List entries, optionally filtered by parent.  Order is the server's."""
        params = {"parent_id": parent_id} if parent_id is not None else None
        resp = await self._request("GET", "/file-entries", "list entries", params=params)
        body = self._json(resp, "list entries")
        items = body.get("data") if isinstance(body, dict) else None
        return [RemoteEntry.from_api(item) for item in items or []]

    async def list(self, folder_id: str) -> List[RemoteEntry]:
        """List the entries inside folder_id."""
        return await self.list_entries(parent_id=folder_id)

    async def ensure_folder(self, name: str) -> str:
        """Return the id of the root folder called name, creating it if needed.

        Two clients creating the folder at the same moment can still end
        up with duplicates; the first match in listing order wins.
        """
        for entry in await self.list_entries():
            if entry.is_folder and entry.name == name and entry.parent_id is None:
                return entry.id

        resp = await self._request(
            "POST",
            "/file-entries/folder",
            "create folder",
            json={"name": name, "parent_id": None},
        )
        folder = RemoteEntry.from_api(_unwrap_entry(self._json(resp, "create folder")))
        logger.info("Created remote folder %r (id=%s)", name, folder.id)
        return folder.id

    async def upload(self, folder_id: Optional[str], filename: str, content: bytes) -> RemoteEntry:
        """Upload content as a new file.  Never overwrites an existing entry."""
        data = {"parent_id": folder_id} if folder_id else None
        resp = await self._request(
            "POST",
            "/file-entries",
            "upload file",
            files={"file": (filename, content, "application/octet-stream")},
            data=data,
        )
        return RemoteEntry.from_api(_unwrap_entry(self._json(resp, "upload file")))

    async def download(self, file_id: str) -> bytes:
        resp = await self._request(
            "GET", f"/file-entries/{file_id}/download", "download file", accept_json=False
        )
        return resp.content

    async def delete(self, file_id: str) -> None:
        await self._request(
            "POST",
            "/file-entries/delete",
            "delete file",
            json={"entry_ids": [file_id]},
        )

    async def test_connection(self) -> None:
        """Raise RemoteError unless an authenticated listing succeeds."""
        await self.list_entries()
