"""Sync engine facade: one object per configured Drime account.

Lifecycle: construct -> configure (initialize) -> operate -> close.

All mutable runtime state (in-progress flag, scheduler task, HTTP client)
lives on the instance, so several engines can coexist in one process.
Two engines pointed at the same remote folder are not coordinated.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.audit_log import EventSeverity, EventType, log_sync_event
from ..core.config_store import ConfigStore
from ..core.kv_store import LocalStore
from ..settings import Settings
from .catalog import SYNC_FOLDER, BackupArtifact, BackupCatalog
from .remote_store import RemoteStore
from .scheduler import AutoSyncScheduler, ErrorObserver
from .session import BackupResult, RestoreResult, SyncSession
from .snapshot import DEFAULT_SECTIONS, LocalStateSnapshot

logger = logging.getLogger(__name__)


class SyncEngine:
    """Owns the config store, remote client, session, catalog and scheduler.

    Args:
        store: Local key/value store (application state + config record).
        settings: Runtime settings (API base URL, timeout).
        transport: Optional httpx transport for the object store client.
        sections: Local state sections included in snapshots.
        on_error: Observer for failed scheduled backups.
    """

    def __init__(
        self,
        store: LocalStore,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sections=DEFAULT_SECTIONS,
        on_error: Optional[ErrorObserver] = None,
    ):
        settings = settings or Settings()
        self.config_store = ConfigStore(store)
        self.remote = RemoteStore(
            self.config_store.require_token,
            base_url=settings.api_base,
            transport=transport,
            timeout=settings.request_timeout,
        )
        self.snapshot = LocalStateSnapshot(store, sections)
        self.session = SyncSession(self.config_store, self.remote, self.snapshot)
        self.catalog = BackupCatalog(self.remote, SYNC_FOLDER)
        self.scheduler = AutoSyncScheduler(self.session, self.config_store, on_error=on_error)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "SyncEngine":
        return cls(LocalStore(str(settings.store_path)), settings=settings, **kwargs)

    async def __aenter__(self) -> "SyncEngine":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ── Configuration ────────────────────────────────────────────────

    async def initialize(self, api_token: str, encryption_key: str) -> None:
        """Save credentials and verify the token against the object store.

        Credentials stay saved when the connection test fails.

        Raises:
            ConfigurationError: Empty token or passphrase.
            RemoteError: Connection test failed.
        """
        self.config_store.set_credentials(api_token, encryption_key)
        log_sync_event(EventType.CONFIG_UPDATED, EventSeverity.INFO, "Credentials updated")
        await self.test_connection()

    async def test_connection(self) -> None:
        await self.remote.test_connection()

    def get_status(self) -> Dict[str, Any]:
        config = self.config_store.config
        return {
            "configured": config.is_configured,
            "auto_sync": config.auto_sync_enabled,
            "last_sync": config.last_sync_timestamp,
            "sync_in_progress": self.session.in_progress,
            "sync_interval": config.sync_interval_minutes,
        }

    async def clear_config(self) -> None:
        """Stop auto-sync and forget all stored configuration."""
        await self.scheduler.stop()
        self.config_store.clear()
        log_sync_event(EventType.CONFIG_CLEARED, EventSeverity.INFO, "Configuration cleared")

    # ── Operations ───────────────────────────────────────────────────

    async def backup(self) -> BackupResult:
        return await self.session.backup()

    async def restore(self, artifact_id: str) -> RestoreResult:
        return await self.session.restore(artifact_id)

    async def list_backups(self) -> List[BackupArtifact]:
        return await self.catalog.list()

    async def delete_backup(self, artifact_id: str) -> None:
        await self.session.delete_backup(artifact_id)

    # ── Auto-sync ────────────────────────────────────────────────────

    async def start_auto_sync(self, interval_minutes: Optional[int] = None) -> None:
        if interval_minutes is None:
            interval_minutes = self.config_store.config.sync_interval_minutes
        await self.scheduler.start(interval_minutes)

    async def stop_auto_sync(self) -> None:
        await self.scheduler.stop()

    async def set_sync_interval(self, minutes: int) -> None:
        await self.scheduler.reconfigure_interval(minutes)

    async def resume(self) -> bool:
        """Re-arm auto-sync if the stored configuration has it enabled.

        Returns True if the scheduler was started.
        """
        config = self.config_store.config
        if config.auto_sync_enabled and not self.scheduler.running:
            await self.scheduler.start(config.sync_interval_minutes)
            return True
        return False

    async def close(self) -> None:
        """Cancel the scheduler task (keeping the stored flag) and close HTTP."""
        await self.scheduler.shutdown()
        await self.remote.aclose()
