"""
Session Storage Backends
========================

Key/value storage behind the anonymous session identity.

TWO BACKENDS:
=============
1. DurableStore  - JSON document on disk, survives restarts
2. VolatileStore - process memory, lives as long as the running instance

The backend is chosen once, at construction, by probing the durable
location. Callers depend on SessionStore, never on a concrete backend.

FAILURE CONTRACT:
=================
Every backend failure surfaces as SessionStorageError. Nothing else
escapes a store.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union
import json
import logging
import os
import tempfile


logger = logging.getLogger(__name__)

PROBE_KEY = "__dpda_probe__"


class SessionStorageError(Exception):
    """Storage backend unavailable (disabled, read-only, quota, corrupt)."""


class SessionStore(ABC):
    """Abstract key/value store for session data."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @property
    @abstractmethod
    def is_durable(self) -> bool:
        pass


class VolatileStore(SessionStore):
    """In-process store. Never fails."""

    def __init__(self):
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    @property
    def is_durable(self) -> bool:
        return False


class DurableStore(SessionStore):
    """
    File-backed store.

    The whole document is rewritten on every set/delete through a temp
    file and os.replace, so a crash never leaves a half-written file.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_durable(self) -> bool:
        return True

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        document = self._load()
        document[key] = value
        self._dump(document)

    def delete(self, key: str) -> None:
        document = self._load()
        if key in document:
            del document[key]
            self._dump(document)

    def _load(self) -> Dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise SessionStorageError(f"Cannot read {self._path}: {e}") from e

        try:
            document = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            raise SessionStorageError(f"Corrupt session file {self._path}: {e}") from e

        if not isinstance(document, dict):
            raise SessionStorageError(f"Corrupt session file {self._path}: not an object")
        return document

    def _dump(self, document: Dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self._path.parent), prefix=".session-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, sort_keys=True)
                os.replace(tmp_name, self._path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise SessionStorageError(f"Cannot write {self._path}: {e}") from e


def select_store(path: Optional[Union[str, Path]]) -> SessionStore:
    """
    Probe the durable location once and pick a backend.

    Returns DurableStore if a probe value round-trips, VolatileStore
    otherwise (including when no path is configured).
    """
    if path is None:
        return VolatileStore()

    durable = DurableStore(path)
    try:
        durable.set(PROBE_KEY, "1")
        ok = durable.get(PROBE_KEY) == "1"
        durable.delete(PROBE_KEY)
    except SessionStorageError as e:
        logger.warning("Durable session storage unavailable, using memory: %s", e)
        return VolatileStore()

    if not ok:
        logger.warning("Durable session storage at %s did not round-trip, using memory", durable.path)
        return VolatileStore()
    return durable
