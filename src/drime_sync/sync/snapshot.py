"""Capture and apply the application's local state sections.

A snapshot maps each section name to either a JSON value or an opaque
string.  A stored section is embedded as parsed JSON only when writing it
back out as compact JSON reproduces the stored text exactly; anything
else (pretty-printed JSON, bare JSON strings, plain text) is embedded as
the raw string.  Either way the section round-trips byte-for-byte.
"""

import json
import logging
from typing import Any, Dict, List, Sequence

from ..errors import DecryptionError
from ..core.kv_store import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_SECTIONS: Sequence[str] = (
    "typingmind_chats",
    "typingmind_settings",
    "typingmind_prompts",
    "typingmind_folders",
    "typingmind_models",
)


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _embed(raw: str) -> Any:
    try:
        parsed = json.loads(raw)
    except ValueError:
        return raw
    if isinstance(parsed, str) or _dump(parsed) != raw:
        return raw
    return parsed


class LocalStateSnapshot:
    """Reads/writes a fixed set of named sections in the local store.

    Args:
        store: Local key/value store.
        sections: Section (key) names to capture.
    """

    def __init__(self, store: LocalStore, sections: Sequence[str] = DEFAULT_SECTIONS):
        self._store = store
        self.sections = tuple(sections)

    def capture(self) -> Dict[str, Any]:
        """Return {section: value} for every present, non-empty section."""
        data: Dict[str, Any] = {}
        for key in self.sections:
            raw = self._store.get(key)
            if raw:
                data[key] = _embed(raw)
        return data

    def apply(self, payload: Dict[str, Any]) -> List[str]:
        """Write sections from a decrypted snapshot back to the store.

        None sections are skipped; sections absent from the payload are
        left untouched.  Every section is serialized before anything is
        written, then all are committed in one transaction.

        Returns:
            Names of the sections written.
        """
        if not isinstance(payload, dict):
            logger.warning("Decrypted backup is not a section mapping")
            raise DecryptionError()

        staged: Dict[str, str] = {}
        for key, value in payload.items():
            if value is None:
                continue
            staged[key] = value if isinstance(value, str) else _dump(value)

        self._store.set_many(staged)
        logger.info("Applied %d snapshot section(s)", len(staged))
        return list(staged)
