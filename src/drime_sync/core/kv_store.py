# Local key/value store
#
# SQLite-backed flat key/value store holding the application's state
# sections (chats, settings, prompts, ...) and the engine's own
# configuration record.  Values are opaque text.
#
# Connections are short-lived, one per call, in WAL mode with a busy
# timeout so a scheduled backup reading sections does not hit
# SQLITE_BUSY while a manual restore is writing them.

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 5000


class LocalStore:
    """SQLite key/value store.

    Args:
        db_path: Path to SQLite file. Defaults to data/drime_sync.db.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = Path(db_path) if db_path else Path("data/drime_sync.db")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        return conn

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Value stored under key, or default."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        return default if row is None else row[0]

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, items: Mapping[str, str]) -> None:
        """Upsert several keys in a single transaction.

        Either every key is written or, on error, none are.
        """
        if not items:
            return
        stamp = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.executemany(
                """INSERT INTO kv_store (key, value, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                [(key, value, stamp) for key, value in items.items()],
            )
            conn.commit()
        logger.debug("Stored %d key(s) in %s", len(items), self.db_path.name)

    def delete(self, key: str) -> bool:
        """Remove key.  Returns True if it existed."""
        with self._connect() as conn:
            removed = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,)).rowcount
            conn.commit()
        return removed > 0
