# Sync audit log
#
# Append-only structured record of everything the engine did to the
# remote folder and to local state: backups created, restored and
# deleted, auto-sync start/stop, and scheduled runs that failed.
#
# One JSON object per line, one file per day:
#     <log_dir>/audit_YYYY-MM-DD.log
#
# Never pass passphrases or API tokens in `details`.

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog

AUDIT_LOGGER_NAME = "drime_sync.audit"


class EventType(str, Enum):
    """Types of sync events that can be logged."""

    CONFIG_UPDATED = "config.updated"
    CONFIG_CLEARED = "config.cleared"

    BACKUP_CREATED = "backup.created"
    BACKUP_FAILED = "backup.failed"
    BACKUP_RESTORED = "backup.restored"
    BACKUP_RESTORE_FAILED = "backup.restore_failed"
    BACKUP_DELETED = "backup.deleted"

    AUTOSYNC_STARTED = "autosync.started"
    AUTOSYNC_STOPPED = "autosync.stopped"
    AUTOSYNC_FAILED = "autosync.failed"


class EventSeverity(str, Enum):
    """Severity levels for sync events."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditLogger:
    """
    Append-only audit logger for sync events.

    Features:
    - Structured JSON lines via structlog
    - Automatic timestamp and event ID
    - Daily log file rotation by name
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ./data/audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./data/audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=False,
        )

        self._file_handler: Optional[logging.Handler] = None
        self._setup_file_handler()

        self.logger = structlog.get_logger(AUDIT_LOGGER_NAME)

    @property
    def log_file(self) -> Path:
        today = datetime.now().strftime("%Y-%m-%d")
        return self.log_dir / f"audit_{today}.log"

    def _setup_file_handler(self):
        """Attach a file handler for today's log to the audit logger only."""
        file_handler = logging.FileHandler(self.log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(message)s"))

        audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        for handler in list(audit_logger.handlers):
            audit_logger.removeHandler(handler)
            handler.close()
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        audit_logger.propagate = False
        self._file_handler = file_handler

    def close(self):
        """Detach and close the file handler."""
        if self._file_handler is not None:
            logging.getLogger(AUDIT_LOGGER_NAME).removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Log a sync event.

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())
        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "details": details or {},
        }

        if severity == EventSeverity.ERROR:
            self.logger.error("sync_event", **event_data)
        elif severity == EventSeverity.WARNING:
            self.logger.warning("sync_event", **event_data)
        else:
            self.logger.info("sync_event", **event_data)

        return event_id


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def set_audit_logger(instance: Optional[AuditLogger]) -> None:
    """Replace the singleton (for testing)."""
    global _audit_logger
    _audit_logger = instance


def log_sync_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs,
) -> Optional[str]:
    """
    Best-effort convenience wrapper around the global audit logger.

    Audit failures are reported through the module logger and never
    raised, so a full disk cannot break a backup.

    Usage:
        log_sync_event(
            EventType.BACKUP_CREATED,
            EventSeverity.INFO,
            "Backup uploaded",
            details={"filename": "backup-...enc"},
        )
    """
    try:
        return get_audit_logger().log_event(event_type, severity, message, **kwargs)
    except Exception:
        logging.getLogger(__name__).warning("Audit log failed: %s", message, exc_info=True)
        return None
