"""Key/value blob storage for persisted chat state.

Each logical key maps to one JSON-serializable value. The file-backed store
writes one file per key and replaces it atomically, so a crash mid-write
leaves the previous value intact.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

SETTINGS_KEY = "ollama-settings"
SESSIONS_KEY = "ollama-chats"
PROMPTS_KEY = "ollama-system-prompts"


class KeyValueStore(Protocol):
    """Get/set-by-key store of JSON-serializable blobs."""

    def load(self, key: str) -> Any | None: ...

    def save(self, key: str, value: Any) -> None: ...


class MemoryStore:
    """In-process store. Values are round-tripped through JSON on save."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.save(key, value)

    def load(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)


class JsonFileStore:
    """Directory of `<key>.json` files."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            with open(path, encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable store file {path}: {e}")
            return None

    def save(self, key: str, value: Any) -> None:
        target = self._path(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = target.with_suffix(f"{target.suffix}.tmp")
        payload = json.dumps(value, indent=2)
        try:
            with open(tmp_path, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, target)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
