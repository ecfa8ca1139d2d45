"""Backup/restore orchestration with single-flight execution.

SyncSession runs one backup or one restore at a time per instance:

  backup:  capture snapshot -> seal -> ensure folder -> upload -> record lastSync
  restore: download -> open -> apply sections to local state

A second backup()/restore() issued while one is running fails at once
with ConcurrencyError and touches nothing.  The in-progress flag is
released on every exit path, including cancellation.

The passphrase is read from the config store at the start of each
operation and only held in locals for its duration.
"""

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..core.audit_log import EventSeverity, EventType, log_sync_event
from ..core.config_store import ConfigStore
from ..errors import ConcurrencyError, DecryptionError
from .catalog import SYNC_FOLDER, backup_filename
from .envelope import CryptoEnvelope
from .remote_store import RemoteStore
from .snapshot import LocalStateSnapshot

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class BackupResult:
    timestamp: str
    filename: str
    artifact_id: str


@dataclass(frozen=True)
class RestoreResult:
    artifact_id: str
    sections: List[str]


class SyncSession:
    """Single-flight backup/restore for one engine instance.

    Args:
        config_store: Source of the passphrase; receives lastSync on success.
        remote: Object store client.
        snapshot: Local state collaborator.
        folder_name: Remote folder holding the artifacts.
        clock: Returns the current time (tests pin it).
    """

    def __init__(
        self,
        config_store: ConfigStore,
        remote: RemoteStore,
        snapshot: LocalStateSnapshot,
        folder_name: str = SYNC_FOLDER,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._config = config_store
        self._remote = remote
        self._snapshot = snapshot
        self._folder_name = folder_name
        self._clock = clock
        self._in_progress = False
        self._operation: Optional[str] = None

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def current_operation(self) -> Optional[str]:
        return self._operation

    @contextmanager
    def _exclusive(self, operation: str):
        # Check-and-set happens without an await in between, so it is
        # atomic with respect to the event loop.
        if self._in_progress:
            raise ConcurrencyError(
                f"Cannot start {operation}: {self._operation} already in progress."
            )
        self._in_progress = True
        self._operation = operation
        try:
            yield
        finally:
            self._in_progress = False
            self._operation = None

    # ── Backup ───────────────────────────────────────────────────────

    async def backup(self) -> BackupResult:
        """Snapshot local state, encrypt it and upload it as a new artifact.

        Raises:
            ConcurrencyError: Another backup/restore is running.
            ConfigurationError: Token or passphrase missing.
            RemoteError: Object store rejected a request.
        """
        with self._exclusive("backup"):
            try:
                result = await self._backup_locked()
            except Exception as exc:
                logger.error("Backup failed: %s", exc)
                log_sync_event(
                    EventType.BACKUP_FAILED,
                    EventSeverity.ERROR,
                    "Backup failed",
                    details={"error": type(exc).__name__},
                )
                raise

        log_sync_event(
            EventType.BACKUP_CREATED,
            EventSeverity.INFO,
            f"Backup created: {result.filename}",
            details={"filename": result.filename, "artifact_id": result.artifact_id},
        )
        return result

    async def _backup_locked(self) -> BackupResult:
        _, passphrase = self._config.require_credentials()

        # 1. Capture
        data = self._snapshot.capture()

        # 2. Seal (PBKDF2 is CPU-bound; keep it off the event loop)
        envelope = await asyncio.to_thread(CryptoEnvelope.seal, data, passphrase)
        del passphrase

        # 3. Folder
        folder_id = await self._remote.ensure_folder(self._folder_name)

        # 4. Name
        timestamp = iso_timestamp(self._clock())
        filename = backup_filename(timestamp)

        # 5. Upload
        entry = await self._remote.upload(folder_id, filename, envelope.encode("ascii"))

        # 6. Commit
        self._config.set_last_sync(timestamp)
        logger.info("Backup uploaded: %s (%d sections)", filename, len(data))
        return BackupResult(timestamp=timestamp, filename=filename, artifact_id=entry.id)

    # ── Restore ──────────────────────────────────────────────────────

    async def restore(self, artifact_id: str) -> RestoreResult:
        """Download, decrypt and apply a backup artifact to local state.

        Nothing is written locally unless decryption succeeds.

        Raises:
            ConcurrencyError: Another backup/restore is running.
            ConfigurationError: Token or passphrase missing.
            RemoteError: Download failed.
            DecryptionError: Wrong passphrase or corrupt artifact.
        """
        with self._exclusive("restore"):
            try:
                result = await self._restore_locked(artifact_id)
            except Exception as exc:
                logger.error("Restore of %s failed: %s", artifact_id, exc)
                log_sync_event(
                    EventType.BACKUP_RESTORE_FAILED,
                    EventSeverity.ERROR,
                    f"Restore failed: {artifact_id}",
                    details={"artifact_id": artifact_id, "error": type(exc).__name__},
                )
                raise

        log_sync_event(
            EventType.BACKUP_RESTORED,
            EventSeverity.INFO,
            f"Backup restored: {artifact_id}",
            details={"artifact_id": artifact_id, "sections": result.sections},
        )
        return result

    async def _restore_locked(self, artifact_id: str) -> RestoreResult:
        _, passphrase = self._config.require_credentials()

        # 1. Download
        blob = await self._remote.download(artifact_id)
        try:
            envelope = blob.decode("ascii")
        except UnicodeDecodeError:
            raise DecryptionError() from None

        # 2. Open
        data = await asyncio.to_thread(CryptoEnvelope.open, envelope.strip(), passphrase)
        del passphrase

        # 3. Apply
        sections = self._snapshot.apply(data)
        return RestoreResult(artifact_id=artifact_id, sections=sections)

    # ── Delete ───────────────────────────────────────────────────────

    async def delete_backup(self, artifact_id: str) -> None:
        """Delete an artifact.  Not guarded by the in-progress flag."""
        await self._remote.delete(artifact_id)
        log_sync_event(
            EventType.BACKUP_DELETED,
            EventSeverity.INFO,
            f"Backup deleted: {artifact_id}",
            details={"artifact_id": artifact_id},
        )
