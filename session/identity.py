"""
Anonymous Session Identity
==========================

Opaque per-installation identifier attached to every outbound request.
The remote side scopes stored automata by this value; there is no
authentication.

LIFECYCLE:
==========
- get_or_create(): created on first use, persisted when storage allows
- reset():         replaced unconditionally
- import_id():     overwritten from an external value (format-checked)
- peek():          read without side effects

Storage is read once. After that the value is served from memory, and
storage is touched only when a new value is written.

FALLBACK:
=========
If the durable store fails at any point, the provider switches to an
in-process VolatileStore for the rest of its lifetime. Storage failures
are logged, never raised to the caller.
"""

from __future__ import annotations
from typing import Callable, Optional
import logging
import re
import uuid

from .storage import SessionStore, SessionStorageError, VolatileStore


logger = logging.getLogger(__name__)

SESSION_KEY = "dpda-session-id"

SESSION_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


class SessionFormatError(ValueError):
    """Imported session id is not a UUID-formatted token."""


def new_session_id() -> str:
    return str(uuid.uuid4())


def is_valid_session_id(value: object) -> bool:
    return isinstance(value, str) and SESSION_ID_PATTERN.fullmatch(value) is not None


class IdentityProvider:
    """
    Owns the session identity and its storage.

    All operations are synchronous and touch only the provider's own
    store.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        id_factory: Callable[[], str] = new_session_id,
    ):
        self._store = store or VolatileStore()
        self._fallback = VolatileStore()
        self._using_fallback = False
        self._id_factory = id_factory
        # Last value read or written; storage is only touched on a miss or a write
        self._current: Optional[str] = None

    @property
    def is_durable(self) -> bool:
        return self._store.is_durable and not self._using_fallback

    def get_or_create(self) -> str:
        existing = self._read()
        if existing:
            return existing

        session_id = self._id_factory()
        self._write(session_id)
        logger.info("Generated new session ID: %s", session_id)
        return session_id

    def reset(self) -> str:
        previous = self._read()
        session_id = self._id_factory()
        while session_id == previous:
            session_id = self._id_factory()

        self._write(session_id)
        logger.info("Reset to new session ID: %s", session_id)
        return session_id

    def import_id(self, session_id: str) -> None:
        if not is_valid_session_id(session_id):
            raise SessionFormatError(
                "Invalid session ID format. Must be a valid UUID."
            )
        self._write(session_id)
        logger.info("Imported session ID: %s", session_id)

    def peek(self) -> Optional[str]:
        return self._read()

    # =========================================================================
    # STORAGE ACCESS (fallback seam)
    # =========================================================================

    def _active(self) -> SessionStore:
        return self._fallback if self._using_fallback else self._store

    def _read(self) -> Optional[str]:
        if self._current is not None:
            return self._current
        try:
            value = self._active().get(SESSION_KEY)
        except SessionStorageError as e:
            self._switch_to_fallback(e)
            value = self._fallback.get(SESSION_KEY)
        self._current = value
        return value

    def _write(self, session_id: str) -> None:
        try:
            self._active().set(SESSION_KEY, session_id)
        except SessionStorageError as e:
            self._switch_to_fallback(e)
            self._fallback.set(SESSION_KEY, session_id)
        self._current = session_id

    def _switch_to_fallback(self, error: SessionStorageError) -> None:
        if not self._using_fallback:
            logger.warning("Session storage unavailable, using in-memory session: %s", error)
        self._using_fallback = True
