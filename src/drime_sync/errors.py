"""Error kinds surfaced by the sync engine.

Every public engine operation either returns a result or raises one of
these.  Callers that only care about "did it work" can catch SyncError.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for all sync engine failures."""


class ConfigurationError(SyncError):
    """Operation attempted without an API token or passphrase configured,
    or with an invalid configuration value."""


class RemoteError(SyncError):
    """Non-success response (or transport failure) from the object store.

    Args:
        status_code: HTTP status, or None when no response was received.
        message: Human-readable description.
    """

    def __init__(self, status_code: Optional[int], message: str):
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__(f"{message} (HTTP {status_code})")


class DecryptionError(SyncError):
    """Envelope could not be opened.

    The message is deliberately the same for a wrong passphrase and for
    corrupted data.
    """

    GENERIC_MESSAGE = "Decryption failed: wrong key or corrupted data."

    def __init__(self, message: str = GENERIC_MESSAGE):
        super().__init__(message)


class ConcurrencyError(SyncError):
    """Backup/restore attempted while another one is already running."""
