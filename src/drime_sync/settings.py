# Runtime settings
#
# Environment overrides for the engine, optionally read from a .env file
# in the working directory.  Nothing here is persisted; the engine's own
# configuration record lives in the local key/value store (core.config_store).

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_API_BASE = "https://app.drime.cloud/api/v1"
DEFAULT_DATA_DIR = "data"
DEFAULT_TIMEOUT_SEC = 30.0


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""

    api_base: str = DEFAULT_API_BASE
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    request_timeout: float = DEFAULT_TIMEOUT_SEC

    @property
    def store_path(self) -> Path:
        return self.data_dir / "drime_sync.db"

    @property
    def audit_log_dir(self) -> Path:
        return self.data_dir / "audit_logs"


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load settings from the environment (and .env, if present).

    Variables already set in the environment win over the .env file.
    """
    load_dotenv(env_file, override=False)

    timeout_raw = os.environ.get("DRIME_SYNC_TIMEOUT", "")
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT_SEC
    except ValueError:
        timeout = DEFAULT_TIMEOUT_SEC

    return Settings(
        api_base=os.environ.get("DRIME_API_BASE", DEFAULT_API_BASE).rstrip("/"),
        data_dir=Path(os.environ.get("DRIME_SYNC_DATA_DIR", DEFAULT_DATA_DIR)),
        request_timeout=timeout,
    )
