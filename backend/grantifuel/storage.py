"""
Key-value storage for client state that outlives the query cache.

Two flavours mirror the browser storage areas the web client relies on:

- MemoryStorage: per-process, dropped on exit ("session storage")
- FileStorage: JSON file on disk, survives restarts ("local storage")

Values are strings; ``get_json``/``set_json`` wrap the common JSON case and
degrade to ``None`` (with a warning) instead of raising on bad data.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


# ============================================================================
# Well-known keys
# ============================================================================

CACHED_USER_KEY = "user"
AUTH_REDIRECT_KEY = "auth_redirect"
AUTH_REDIRECT_PATH_KEY = "auth_redirect_path"
AI_RECOMMENDATIONS_KEY = "ai-grant-recommendations"
SELECTED_GRANT_KEY = "selectedGrant"


class MemoryStorage:
    """In-memory string store with the browser Storage API surface."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)
        self._persist()

    def remove_item(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._persist()

    def clear(self) -> None:
        self._data.clear()
        self._persist()

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def get_json(self, key: str) -> Any:
        """Decode a JSON value, or ``None`` if missing or unparseable."""
        raw = self.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Discarding unparseable storage value for '{key}': {e}")
            return None

    def set_json(self, key: str, value: Any) -> bool:
        """Encode and store a JSON value. Returns False if it could not be stored."""
        try:
            self.set_item(key, json.dumps(value, default=str))
            return True
        except (TypeError, ValueError, OSError) as e:
            logger.error(f"Error saving '{key}' to storage: {e}")
            return False

    def pop_json(self, key: str) -> Any:
        """Read a one-shot JSON hand-off and remove it."""
        value = self.get_json(key)
        self.remove_item(key)
        return value

    def _persist(self) -> None:
        """Hook for subclasses that write through to durable storage."""


class FileStorage(MemoryStorage):
    """Storage persisted as a single JSON object on disk."""

    def __init__(self, path: str):
        self.path = Path(os.path.expanduser(path))
        super().__init__(self._load())

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read local storage at {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed local storage at {self.path}")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(self._data, fh)
        os.replace(tmp_path, self.path)
