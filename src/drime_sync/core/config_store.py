"""Persisted engine configuration.

The whole record is stored as one JSON document under a fixed key in the
local key/value store and rewritten on every mutation.  Field names on
disk are kept compatible with records written by earlier releases.

Note: the passphrase is stored in plaintext next to the API token.  Anyone
who can read the local store can decrypt the backups.  Callers that cannot
accept that should clear the record after use (``clear()``) and call
``set_credentials()`` again per session.
"""

import json
import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from ..errors import ConfigurationError
from .kv_store import LocalStore

logger = logging.getLogger(__name__)

CONFIG_KEY = "drime_sync_config"
DEFAULT_SYNC_INTERVAL_MINUTES = 5


@dataclass(frozen=True)
class Configuration:
    """Snapshot of the engine configuration."""

    api_token: Optional[str] = None
    encryption_key: Optional[str] = None
    sync_interval_minutes: int = DEFAULT_SYNC_INTERVAL_MINUTES
    auto_sync_enabled: bool = False
    last_sync_timestamp: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token and self.encryption_key)

    def to_record(self) -> dict:
        return {
            "apiToken": self.api_token,
            "encryptionKey": self.encryption_key,
            "syncInterval": self.sync_interval_minutes,
            "autoSync": self.auto_sync_enabled,
            "lastSync": self.last_sync_timestamp,
        }

    @classmethod
    def from_record(cls, record: dict) -> "Configuration":
        """Build from a stored record, falling back to defaults per field."""
        defaults = cls()
        interval = record.get("syncInterval", defaults.sync_interval_minutes)
        if not _valid_interval(interval):
            logger.warning("Ignoring invalid stored sync interval: %r", interval)
            interval = defaults.sync_interval_minutes
        return cls(
            api_token=record.get("apiToken"),
            encryption_key=record.get("encryptionKey"),
            sync_interval_minutes=interval,
            auto_sync_enabled=bool(record.get("autoSync", False)),
            last_sync_timestamp=record.get("lastSync"),
        )


def _valid_interval(minutes) -> bool:
    return isinstance(minutes, int) and not isinstance(minutes, bool) and minutes > 0


class ConfigStore:
    """Owns the Configuration record; every setter persists the whole record.

    Args:
        store: Local key/value store the record is persisted in.
    """

    def __init__(self, store: LocalStore):
        self._store = store
        self._config = Configuration()
        self.load()

    @property
    def config(self) -> Configuration:
        return self._config

    @property
    def is_configured(self) -> bool:
        return self._config.is_configured

    def load(self) -> Configuration:
        """(Re)load the record from the store.  A corrupt record yields defaults."""
        raw = self._store.get(CONFIG_KEY)
        if raw is None:
            self._config = Configuration()
            return self._config
        try:
            record = json.loads(raw)
            if not isinstance(record, dict):
                raise ValueError("configuration record is not an object")
            self._config = Configuration.from_record(record)
        except ValueError as exc:
            logger.error("Failed to load sync configuration: %s", exc)
            self._config = Configuration()
        return self._config

    def _save(self, config: Configuration) -> Configuration:
        self._store.set(CONFIG_KEY, json.dumps(config.to_record()))
        self._config = config
        return config

    # ── Setters ──────────────────────────────────────────────────────

    def set_credentials(self, api_token: str, encryption_key: str) -> Configuration:
        if not api_token:
            raise ConfigurationError("API token must not be empty.")
        if not encryption_key:
            raise ConfigurationError("Encryption passphrase must not be empty.")
        return self._save(
            replace(self._config, api_token=api_token, encryption_key=encryption_key)
        )

    def set_sync_interval(self, minutes: int) -> Configuration:
        if not _valid_interval(minutes):
            raise ConfigurationError(
                f"Sync interval must be a positive whole number of minutes, got {minutes!r}."
            )
        return self._save(replace(self._config, sync_interval_minutes=minutes))

    def set_auto_sync(self, enabled: bool, interval: Optional[int] = None) -> Configuration:
        if interval is not None and not _valid_interval(interval):
            raise ConfigurationError(
                f"Sync interval must be a positive whole number of minutes, got {interval!r}."
            )
        config = replace(self._config, auto_sync_enabled=bool(enabled))
        if interval is not None:
            config = replace(config, sync_interval_minutes=interval)
        return self._save(config)

    def set_last_sync(self, timestamp: str) -> Configuration:
        return self._save(replace(self._config, last_sync_timestamp=timestamp))

    def clear(self) -> Configuration:
        """Remove the persisted record and reset to defaults."""
        self._store.delete(CONFIG_KEY)
        self._config = Configuration()
        return self._config

    # ── Guards ───────────────────────────────────────────────────────

    def require_token(self) -> str:
        if not self._config.api_token:
            raise ConfigurationError("No API token configured.")
        return self._config.api_token

    def require_credentials(self) -> Tuple[str, str]:
        """Return (api_token, passphrase) or raise ConfigurationError."""
        token = self.require_token()
        if not self._config.encryption_key:
            raise ConfigurationError("No encryption passphrase configured.")
        return token, self._config.encryption_key
