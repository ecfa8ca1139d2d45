# Core module - shared building blocks
#
# - Local SQLite key/value store (application state + engine config)
# - Persisted engine configuration
# - Structured audit logging of sync events

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_sync_event,
    set_audit_logger,
)
from .config_store import CONFIG_KEY, ConfigStore, Configuration
from .kv_store import LocalStore

__all__ = [
    # Local state
    "LocalStore",
    # Configuration
    "CONFIG_KEY",
    "ConfigStore",
    "Configuration",
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "set_audit_logger",
    "log_sync_event",
]
