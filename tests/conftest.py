"""
Shared pytest fixtures for the drime-sync test suite.

  - Audit logger   -> temp directory (autouse; keeps ./data clean)
  - FakeDrime      -> in-memory object store behind httpx.MockTransport,
                      so no test touches the network
  - local_store / engine -> per-test SQLite file under tmp_path
"""

import asyncio
import json
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import httpx
import pytest

from drime_sync.core.audit_log import AuditLogger, set_audit_logger
from drime_sync.core.kv_store import LocalStore
from drime_sync.settings import Settings
from drime_sync.sync.engine import SyncEngine

API_BASE = "https://drime.test/api/v1"
API_TOKEN = "test-token-123"
PASSPHRASE = "correct-horse-battery"


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path):
    """Point the global AuditLogger at a temp directory for every test."""
    audit = AuditLogger(tmp_path / "audit_logs")
    set_audit_logger(audit)
    yield audit
    audit.close()
    set_audit_logger(None)


# ── Fake object store ───────────────────────────────────────────────


def _parse_multipart(request: httpx.Request) -> Tuple[Dict[str, str], Dict[str, Tuple[str, bytes]]]:
    """Split a multipart/form-data body into (fields, files)."""
    boundary = request.headers["content-type"].split("boundary=", 1)[1].encode()
    fields: Dict[str, str] = {}
    files: Dict[str, Tuple[str, bytes]] = {}
    for part in request.content.split(b"--" + boundary):
        if not part or part.startswith(b"--"):
            continue
        if part.startswith(b"\r\n"):
            part = part[2:]
        head, _, body = part.partition(b"\r\n\r\n")
        if body.endswith(b"\r\n"):
            body = body[:-2]
        head_text = head.decode("utf-8")
        name = re.search(r'name="([^"]*)"', head_text).group(1)
        filename = re.search(r'filename="([^"]*)"', head_text)
        if filename:
            files[name] = (filename.group(1), body)
        else:
            fields[name] = body.decode("utf-8")
    return fields, files


class FakeDrime:
    """Minimal in-memory Drime file-entries API."""

    def __init__(self, token: str = API_TOKEN):
        self.token = token
        self.entries: Dict[str, dict] = {}
        self.blobs: Dict[str, bytes] = {}
        self.requests: List[Tuple[str, str]] = []
        self.failures: Dict[Tuple[str, str], int] = {}
        self.upload_started: Optional[asyncio.Event] = None
        self.upload_gate: Optional[asyncio.Event] = None
        self._next_id = 100
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    # helpers for tests

    def fail(self, method: str, path: str, status: int):
        """Make the next request to (method, path) return status."""
        self.failures[(method, path)] = status

    def folders(self, name: str) -> List[dict]:
        return [e for e in self.entries.values() if e["type"] == "folder" and e["name"] == name]

    def files_in(self, parent_id: str) -> List[dict]:
        return [e for e in self.entries.values() if e["parent_id"] == parent_id]

    def add_entry(self, name: str, kind: str = "text", parent_id=None,
                  created_at: Optional[str] = None, content: bytes = b"") -> dict:
        self._next_id += 1
        self._clock += timedelta(seconds=1)
        stamp = created_at or self._clock.isoformat().replace("+00:00", ".000000Z")
        entry = {
            "id": self._next_id,
            "name": name,
            "type": kind,
            "file_size": len(content),
            "created_at": stamp,
            "updated_at": stamp,
            "parent_id": parent_id,
        }
        self.entries[str(self._next_id)] = entry
        self.blobs[str(self._next_id)] = content
        return entry

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # request handling

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api/v1")
        self.requests.append((request.method, path))

        status = self.failures.pop((request.method, path), None)
        if status is not None:
            return httpx.Response(status, text="injected failure")

        if request.headers.get("authorization") != f"Bearer {self.token}":
            return httpx.Response(401, json={"message": "Unauthenticated."})

        if request.method == "GET" and path == "/file-entries":
            parent = request.url.params.get("parent_id")
            if parent is not None and parent not in self.entries:
                return httpx.Response(404, json={"message": "Not found"})
            items = [e for e in self.entries.values()
                     if (str(e["parent_id"]) if e["parent_id"] is not None else None) == parent]
            return httpx.Response(200, json={"data": items})

        if request.method == "POST" and path == "/file-entries/folder":
            body = json.loads(request.content)
            entry = self.add_entry(body["name"], kind="folder", parent_id=body.get("parent_id"))
            return httpx.Response(200, json={"folder": entry})

        if request.method == "POST" and path == "/file-entries":
            if self.upload_started is not None:
                self.upload_started.set()
            if self.upload_gate is not None:
                await self.upload_gate.wait()
            fields, files = _parse_multipart(request)
            filename, content = files["file"]
            parent = fields.get("parent_id")
            entry = self.add_entry(filename, parent_id=int(parent) if parent else None, content=content)
            return httpx.Response(200, json={"fileEntry": entry})

        match = re.fullmatch(r"/file-entries/(\d+)/download", path)
        if request.method == "GET" and match:
            entry_id = match.group(1)
            if entry_id not in self.blobs:
                return httpx.Response(404, text="Not found")
            return httpx.Response(200, content=self.blobs[entry_id])

        if request.method == "POST" and path == "/file-entries/delete":
            ids = [str(i) for i in json.loads(request.content)["entry_ids"]]
            if any(i not in self.entries for i in ids):
                return httpx.Response(404, json={"message": "Not found"})
            for i in ids:
                self.entries.pop(i)
                self.blobs.pop(i, None)
            return httpx.Response(200, json={"status": "success"})

        return httpx.Response(404, text="no route")


@pytest.fixture
def fake_drime():
    return FakeDrime()


@pytest.fixture
def local_store(tmp_path):
    return LocalStore(str(tmp_path / "state.db"))


@pytest.fixture
def engine(local_store, fake_drime):
    return SyncEngine(
        local_store,
        settings=Settings(api_base=API_BASE),
        transport=fake_drime.transport(),
    )


@pytest.fixture
def configured_engine(engine):
    engine.config_store.set_credentials(API_TOKEN, PASSPHRASE)
    return engine
