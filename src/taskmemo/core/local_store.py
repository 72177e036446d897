"""Local key-value persistence for the credential and the room-list cache."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import RLock
from typing import Mapping, Protocol

logger = logging.getLogger("taskmemo.local_store")

TOKEN_KEY = "chatwork_api_token"
ROOMS_CACHE_KEY = "chatwork_rooms_cache"
ROOMS_CACHE_TIMESTAMP_KEY = "chatwork_rooms_cache_timestamp"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def set_many(self, values: Mapping[str, str]) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Dict-backed store, mostly for tests."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def set_many(self, values: Mapping[str, str]) -> None:
        self._data.update({key: str(value) for key, value in values.items()})

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileStore:
    """One JSON object on disk; every write replaces the whole file.

    Writes go through a sibling temp file and `os.replace`, so a reader sees
    either the previous object or the new one, never a mix of keys.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = RLock()

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Ignoring state file %s: root is not a JSON object.", self.path)
            return {}
        return {str(key): value for key, value in payload.items() if isinstance(value, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        with self._lock:
            data = self._read_all()
            data.update({key: str(value) for key, value in values.items()})
            self._write_all(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)
