# Auto-sync scheduler
#
# Background asyncio task that calls SyncSession.backup() once right
# away and then every `interval_minutes`.  A failed run is logged, sent
# to the optional error observer, and the loop carries on.
#
# start() while running restarts the loop: the periodic phase resets and
# one extra immediate backup happens.  That extra run is expected.

import asyncio
import logging
from typing import Callable, Optional

from ..core.audit_log import EventSeverity, EventType, log_sync_event
from ..core.config_store import ConfigStore
from .session import SyncSession

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE = 60

ErrorObserver = Callable[[Exception], None]


class AutoSyncScheduler:
    """Supervised periodic backup task.

    Args:
        session: Session whose backup() is invoked.
        config_store: Receives autoSync / interval updates.
        on_error: Called with each exception from a scheduled run.
    """

    def __init__(
        self,
        session: SyncSession,
        config_store: ConfigStore,
        on_error: Optional[ErrorObserver] = None,
    ):
        self._session = session
        self._config = config_store
        self._on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self._interval_minutes: Optional[int] = None
        self._current_run: Optional[asyncio.Task] = None
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_minutes(self) -> Optional[int]:
        return self._interval_minutes if self.running else None

    async def start(self, interval_minutes: int):
        """(Re)arm the periodic backup loop.  Must be called inside a running loop."""
        # Validates the interval; raises ConfigurationError before anything changes.
        self._config.set_auto_sync(True, interval_minutes)
        if self._task is not None:
            await self._cancel_task()

        self._interval_minutes = interval_minutes
        self._task = asyncio.create_task(
            self._run_loop(interval_minutes), name="drime-sync-autosync"
        )
        logger.info("Auto-sync started (interval=%dmin)", interval_minutes)
        log_sync_event(
            EventType.AUTOSYNC_STARTED,
            EventSeverity.INFO,
            "Auto-sync started",
            details={"interval_minutes": interval_minutes},
        )

    async def stop(self):
        """Cancel the loop and persist autoSync=false.  Safe when not running."""
        was_running = self._task is not None
        await self._cancel_task()
        self._config.set_auto_sync(False)
        if was_running:
            logger.info("Auto-sync stopped")
            log_sync_event(EventType.AUTOSYNC_STOPPED, EventSeverity.INFO, "Auto-sync stopped")

    async def shutdown(self):
        """Cancel the loop without touching the persisted autoSync flag."""
        await self._cancel_task()

    async def reconfigure_interval(self, minutes: int):
        """Persist a new interval; restart the loop if it is running."""
        self._config.set_sync_interval(minutes)
        if self.running:
            await self.stop()
            await self.start(minutes)

    async def _cancel_task(self):
        """Cancel the timer loop, then let an in-flight backup finish."""
        task, self._task = self._task, None
        self._interval_minutes = None
        if task is not None:
            task.cancel()
            await self._wait_cancelled(task)

        run = self._current_run
        if run is not None and not run.done():
            logger.info("Waiting for in-flight scheduled backup to finish")
            await asyncio.shield(run)

    @staticmethod
    async def _wait_cancelled(task: asyncio.Task):
        try:
            await task
        except asyncio.CancelledError:
            # Re-raise if it is our caller being cancelled, not just the loop.
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise

    async def _run_loop(self, interval_minutes: int):
        """Immediate run, then one run per interval until cancelled.

        Each backup runs in its own task; cancelling the loop only
        interrupts the wait, never a backup that is already running.
        """
        while True:
            self._current_run = asyncio.create_task(
                self._run_once(), name="drime-sync-autosync-run"
            )
            await asyncio.shield(self._current_run)
            await asyncio.sleep(interval_minutes * SECONDS_PER_MINUTE)

    async def _run_once(self):
        try:
            result = await self._session.backup()
            logger.debug("Scheduled backup done: %s", getattr(result, "filename", result))
        except Exception as exc:
            self.failures += 1
            logger.warning("Scheduled backup failed: %s", exc)
            log_sync_event(
                EventType.AUTOSYNC_FAILED,
                EventSeverity.WARNING,
                "Scheduled backup failed",
                details={"error": type(exc).__name__},
            )
            self._notify(exc)

    def _notify(self, exc: Exception):
        if self._on_error is None:
            return
        try:
            self._on_error(exc)
        except Exception:
            logger.exception("Auto-sync error observer raised")
