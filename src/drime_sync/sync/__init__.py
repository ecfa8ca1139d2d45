"""Drime Sync - encrypted backup, restore and auto-sync."""

from .catalog import SYNC_FOLDER, BackupArtifact, BackupCatalog, backup_filename
from .engine import SyncEngine
from .envelope import CryptoEnvelope
from .remote_store import RemoteEntry, RemoteStore
from .scheduler import AutoSyncScheduler
from .session import BackupResult, RestoreResult, SyncSession
from .snapshot import DEFAULT_SECTIONS, LocalStateSnapshot

__all__ = [
    "SYNC_FOLDER",
    "BackupArtifact",
    "BackupCatalog",
    "backup_filename",
    "SyncEngine",
    "CryptoEnvelope",
    "RemoteEntry",
    "RemoteStore",
    "AutoSyncScheduler",
    "BackupResult",
    "RestoreResult",
    "SyncSession",
    "DEFAULT_SECTIONS",
    "LocalStateSnapshot",
]
