"""
Session Layer
=============

Anonymous session identity and the storage backends that hold it.
"""

from .storage import (
    SessionStore,
    SessionStorageError,
    DurableStore,
    VolatileStore,
    select_store,
)
from .identity import (
    IdentityProvider,
    SessionFormatError,
    SESSION_KEY,
    is_valid_session_id,
    new_session_id,
)

__all__ = [
    'SessionStore',
    'SessionStorageError',
    'DurableStore',
    'VolatileStore',
    'select_store',
    'IdentityProvider',
    'SessionFormatError',
    'SESSION_KEY',
    'is_valid_session_id',
    'new_session_id',
]
