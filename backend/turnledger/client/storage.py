"""
Client-local key/value storage for the session store.

``MemoryStorage`` is for tests and throwaway sessions; ``FileStorage`` keeps
the keys in a JSON file so a session survives a restart on the same device.
Nothing here is shared with the backend.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path

logger = logging.getLogger(__name__)


class MemoryStorage:
    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileStorage(MemoryStorage):
    """
    JSON-file backed storage.

    Every write rewrites the whole file through a temp file and an atomic
    rename. A missing or corrupt file starts out empty.
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._lock = threading.Lock()
        super().__init__(self._read())

    def _read(self) -> dict[str, str]:
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable session file %s", self.path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".session-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise

    def set(self, key: str, value: str) -> None:
        with self._lock:
            super().set(key, value)
            self._write()

    def remove(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            super().remove(key)
            self._write()
