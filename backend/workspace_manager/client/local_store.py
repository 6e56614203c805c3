"""Client-side key/value store with best-effort durability.

Values are kept in an in-memory map that is authoritative for the lifetime of
the process and mirrored as JSON text into a :class:`StorageBackend`.  Storage
problems never propagate: unreadable entries fall back to the caller's
default and failed writes are logged and reported as
:class:`~workspace_manager.client.result.PersistenceFailure`.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any
from typing import Dict
from typing import Iterator
from typing import Optional
from typing import Protocol
from urllib.parse import quote
from urllib.parse import unquote

from workspace_manager.client.result import Err
from workspace_manager.client.result import Ok
from workspace_manager.client.result import PersistenceFailure
from workspace_manager.client.result import Result

logger = logging.getLogger(__name__)

_MISSING = object()


class StorageBackend(Protocol):
    """Text persistence used by :class:`LocalStore`."""

    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, text: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...

    def clear(self) -> None: ...


class MemoryStorageBackend:
    """Process-local backend for tests and embedded use."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def write(self, key: str, text: str) -> None:
        self.data[key] = text

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self.data))

    def clear(self) -> None:
        self.data.clear()


class FileStorageBackend:
    """One ``<quoted key>.json`` file per key under *directory*.

    Writes go to a temporary file that is renamed into place so a crash never
    leaves a half-written value behind.
    """

    SUFFIX = ".json"

    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, text: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> Iterator[str]:
        if not self.directory.is_dir():
            return iter(())
        return (unquote(p.name[: -len(self.SUFFIX)]) for p in sorted(self.directory.glob(f"*{self.SUFFIX}")))

    def clear(self) -> None:
        for key in list(self.keys()):
            self.delete(key)


class LocalStore:
    """``get``/``set``/``remove``/``clear`` over a :class:`StorageBackend`.

    Values are deep-copied on the way in and out, so mutating a returned
    dict never changes what is stored.
    """

    def __init__(self, backend: Optional[StorageBackend] = None):
        self.backend: StorageBackend = backend if backend is not None else MemoryStorageBackend()
        self._cache: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        value = self._cache.get(key, _MISSING)
        if value is _MISSING:
            value = self._load(key)
            if value is _MISSING:
                return copy.deepcopy(default)
            self._cache[key] = value
        return copy.deepcopy(value)

    def _load(self, key: str) -> Any:
        try:
            text = self.backend.read(key)
        except OSError as exc:
            logger.error("Failed to read %s from local storage: %s", key, exc)
            return _MISSING
        if text is None:
            return _MISSING
        try:
            return json.loads(text)
        except ValueError as exc:
            logger.error("Discarding unreadable local value for %s: %s", key, exc)
            return _MISSING

    def keys(self, prefix: str = "") -> list[str]:
        """Keys currently known in memory or in the backend."""

        known = set(self._cache)
        try:
            known.update(self.backend.keys())
        except OSError as exc:
            logger.error("Failed to list local storage keys: %s", exc)
        return sorted(k for k in known if k.startswith(prefix))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> Result[None]:
        stored = copy.deepcopy(value)
        self._cache[key] = stored
        try:
            self.backend.write(key, json.dumps(stored))
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to persist %s to local storage: %s", key, exc)
            return Err(PersistenceFailure(f"Could not persist {key}: {exc}"))
        return Ok(None)

    def remove(self, key: str) -> Result[None]:
        self._cache.pop(key, None)
        try:
            self.backend.delete(key)
        except OSError as exc:
            logger.error("Failed to remove %s from local storage: %s", key, exc)
            return Err(PersistenceFailure(f"Could not remove {key}: {exc}"))
        return Ok(None)

    def clear(self) -> Result[None]:
        self._cache.clear()
        try:
            self.backend.clear()
        except OSError as exc:
            logger.error("Failed to clear local storage: %s", exc)
            return Err(PersistenceFailure(f"Could not clear local storage: {exc}"))
        return Ok(None)


def entity_key(entity_type: str, entity_id: str) -> str:
    """Local Store key for the cached copy of an entity."""

    return f"entity:{getattr(entity_type, 'value', entity_type)}:{entity_id}"


__all__ = [
    "StorageBackend",
    "MemoryStorageBackend",
    "FileStorageBackend",
    "LocalStore",
    "entity_key",
]
