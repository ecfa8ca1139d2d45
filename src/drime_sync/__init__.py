# Drime Sync - Main Package
#
# Encrypted backup/restore of local application state into a Drime
# cloud folder. Snapshots are sealed client-side (AES-256-GCM) before
# they ever leave the machine.

__version__ = "0.3.0"
__author__ = "Drime Sync Team"
__description__ = "Encrypted backup and restore engine for Drime cloud storage"

from .errors import (
    ConcurrencyError,
    ConfigurationError,
    DecryptionError,
    RemoteError,
    SyncError,
)
from .sync.engine import SyncEngine

__all__ = [
    "__version__",
    "SyncEngine",
    "SyncError",
    "ConfigurationError",
    "RemoteError",
    "DecryptionError",
    "ConcurrencyError",
]
