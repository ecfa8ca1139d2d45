"""Backup catalog: which encrypted snapshots exist in the sync folder."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from ..errors import RemoteError
from .remote_store import RemoteEntry, RemoteStore

logger = logging.getLogger(__name__)

SYNC_FOLDER = "TypingMindBackup"

# backup-<ISO-8601 with ':' and '.' replaced by '-'>.enc
BACKUP_NAME_RE = re.compile(
    r"^backup-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}(?:-\d+)?(?:Z|[+-]\d{2}-\d{2})?\.enc$"
)

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class BackupArtifact:
    id: str
    name: str
    size_bytes: int
    created_at: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_entry(cls, entry: RemoteEntry) -> "BackupArtifact":
        return cls(
            id=entry.id,
            name=entry.name,
            size_bytes=entry.size_bytes,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def backup_filename(timestamp: str) -> str:
    """backup-<timestamp with every ':' and '.' replaced by '-'>.enc"""
    return "backup-" + timestamp.replace(":", "-").replace(".", "-") + ".enc"


def is_backup_name(name: str) -> bool:
    return bool(name) and BACKUP_NAME_RE.match(name) is not None


def _created_sort_key(artifact: BackupArtifact) -> datetime:
    """Parse created_at; unparseable or missing timestamps sort last."""
    if not artifact.created_at:
        return _UNDATED
    try:
        parsed = datetime.fromisoformat(artifact.created_at.replace("Z", "+00:00"))
    except ValueError:
        return _UNDATED
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class BackupCatalog:
    """Lists backup artifacts, newest first.

    Args:
        remote: Object store client.
        folder_name: Name of the root folder holding the artifacts.
    """

    def __init__(self, remote: RemoteStore, folder_name: str = SYNC_FOLDER):
        self._remote = remote
        self._folder_name = folder_name

    async def list(self) -> List[BackupArtifact]:
        """Return backup artifacts sorted by created_at descending.

        Entries with equal timestamps keep the store's listing order.
        A missing folder yields an empty list.
        """
        folder_id = await self._remote.ensure_folder(self._folder_name)
        try:
            entries = await self._remote.list(folder_id)
        except RemoteError as exc:
            if exc.status_code == 404:
                logger.info("Sync folder %s not found; no backups", folder_id)
                return []
            raise

        artifacts = [
            BackupArtifact.from_entry(entry)
            for entry in entries
            if not entry.is_folder and is_backup_name(entry.name)
        ]
        # sorted() is stable, including with reverse=True
        return sorted(artifacts, key=_created_sort_key, reverse=True)
