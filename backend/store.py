"""Safety Spotter Backend — Key-value storage for user settings.

Settings and runtime API keys are stored as strings under namespaced keys.
Two backends: MemoryStore (default, per-process) and JsonFileStore, which
keeps every key in one JSON document on disk.
"""

import os
import json
import logging
import threading
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger("safety.store")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self):
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileStore:
    """All keys in a single JSON object; every write replaces the file atomically."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read settings file {self._path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Settings file {self._path} is not a JSON object — ignoring")
            return {}
        return data

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self._path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)


def open_store(path: str = "") -> KeyValueStore:
    """JsonFileStore at ``path``, or a MemoryStore when no path is configured."""
    if path:
        logger.info(f"Using settings file {path}")
        return JsonFileStore(path)
    return MemoryStore()
