"""Key-value store boundary plus JSON helpers for persisted engine state.

The engine only ever sees `get(key) -> bytes | None` and `set(key, bytes)`.
Values may be missing or corrupt; the JSON helpers treat both as absent.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

from hydro_reminders.errors import StorageUnavailable

log = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes) -> None: ...


class MemoryStore:
    """Process-local store. Used for previews and tests."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self.data: dict[str, bytes] = dict(initial or {})

    async def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self.data[key] = value


def _slugify(key: str) -> str:
    """Convert a store key to a filesystem-safe file stem."""
    slug = re.sub(r"[^a-zA-Z0-9_.-]+", "-", key).strip("-")
    return slug or "_"


class FileStore:
    """One file per key under a directory. Atomic writes (temp file + rename)."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, key: str) -> Path:
        return self.directory / f"{_slugify(key)}.json"

    async def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageUnavailable(key, str(exc)) from exc

    async def set(self, key: str, value: bytes) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                os.write(fd, value)
            finally:
                os.close(fd)
            os.replace(tmp, self._path(key))
        except OSError as exc:
            raise StorageUnavailable(key, str(exc)) from exc


async def read_json(store: KeyValueStore, key: str) -> Any | None:
    """Decoded value, or None when the key is absent, unreadable, or corrupt."""
    try:
        raw = await store.get(key)
    except Exception:
        log.warning("Store read failed for %s, treating as empty", key, exc_info=True)
        return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError):
        log.warning("Skipping corrupt value for %s: %.80r", key, raw)
        return None


async def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    """Raises StorageUnavailable when the store rejects the write."""
    payload = json.dumps(value, ensure_ascii=False).encode()
    try:
        await store.set(key, payload)
    except StorageUnavailable:
        raise
    except Exception as exc:
        raise StorageUnavailable(key, str(exc)) from exc
