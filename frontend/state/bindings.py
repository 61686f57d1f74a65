"""
Query and Mutation Bindings

Declarative handles the UI holds for one resource or one write.

QUERY BINDING:
==============
key + fetcher + freshness policy + enablement. A disabled binding
(missing entity id, or caller override) never fetches and never reports
LOADING.

MUTATION BINDING:
=================
write coroutine + MutationKind. On success the kind's invalidation set
is applied to the store; on failure the store is left exactly as it was
and the error propagates.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, Tuple, TypeVar
import logging

from .invalidation import MutationKind, ResolvedInvalidation, apply_invalidations
from .keys import CacheKey, ResourceKind
from .store import FetchStatus, ResourceStore


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class QueryBinding(Generic[T]):
    """Read handle for one cached resource."""

    def __init__(
        self,
        store: ResourceStore,
        kind: ResourceKind,
        key: Optional[CacheKey],
        fetcher: Callable[[], Awaitable[T]],
        enabled: Optional[bool] = None,
    ):
        self._store = store
        self._kind = kind
        self._key = key
        self._fetcher = fetcher
        # No key means a required component (the entity id) is absent
        self._enabled = key is not None and (True if enabled is None else bool(enabled))

    @property
    def kind(self) -> ResourceKind:
        return self._kind

    @property
    def key(self) -> Optional[CacheKey]:
        return self._key

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def stale_time(self) -> Optional[float]:
        return self._kind.policy.stale_time

    @property
    def status(self) -> FetchStatus:
        if not self._enabled:
            return FetchStatus.IDLE
        return self._store.status(self._key)

    @property
    def is_loading(self) -> bool:
        return self.status is FetchStatus.LOADING

    @property
    def error(self) -> Optional[BaseException]:
        if not self._enabled:
            return None
        entry = self._store.entry(self._key)
        return entry.error if entry is not None else None

    @property
    def is_stale(self) -> bool:
        if not self._enabled:
            return False
        return self._store.is_stale(self._key, self.stale_time)

    def peek(self) -> Optional[T]:
        """Fresh cached data, synchronously; None if a fetch is needed."""
        if not self._enabled:
            return None
        return self._store.peek(self._key, self.stale_time)

    async def read(self) -> Optional[T]:
        """
        Cached data if fresh, otherwise fetched data.

        Returns None for a disabled binding. A failed fetch is recorded
        on the entry and re-raised.
        """
        if not self._enabled:
            return None
        return await self._store.fetch(
            self._key, self._fetcher, self.stale_time, gc_time=self._kind.policy.gc_time
        )

    async def refetch(self) -> Optional[T]:
        """Fetch regardless of freshness."""
        if not self._enabled:
            return None
        return await self._store.fetch(
            self._key, self._fetcher, self.stale_time,
            force=True, gc_time=self._kind.policy.gc_time,
        )

    async def prefetch(self) -> None:
        """
        Warm the cache ahead of a likely read.

        Never raises: a failure is recorded on the entry (status, error)
        and the next read() tries again.
        """
        try:
            await self.read()
        except Exception as e:
            logger.warning("Prefetch of %s failed: %s", self._key, e)

    def __repr__(self) -> str:
        return f"QueryBinding({self._kind.value}, key={self._key}, enabled={self._enabled})"


class MutationStatus(Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class MutationBinding(Generic[R]):
    """
    Write handle for one mutation kind.

    GUARANTEES:
    ===========
    1. Invalidations apply only after the write succeeds
    2. A failed write leaves the store untouched and re-raises
    3. Positional transition writes never patch the cached list
    """

    def __init__(
        self,
        store: ResourceStore,
        kind: MutationKind,
        write: Callable[..., Awaitable[R]],
        entity_id: Optional[str] = None,
        entity_of: Optional[Callable[[R], str]] = None,
        on_success: Optional[Callable[[R], None]] = None,
    ):
        self._store = store
        self._kind = kind
        self._write = write
        self._entity_id = entity_id
        self._entity_of = entity_of
        self._on_success = on_success

        self._status = MutationStatus.IDLE
        self._error: Optional[BaseException] = None
        self._data: Optional[R] = None
        self._last_invalidations: Tuple[ResolvedInvalidation, ...] = ()

    @property
    def kind(self) -> MutationKind:
        return self._kind

    @property
    def entity_id(self) -> Optional[str]:
        return self._entity_id

    @property
    def status(self) -> MutationStatus:
        return self._status

    @property
    def is_pending(self) -> bool:
        return self._status is MutationStatus.PENDING

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def data(self) -> Optional[R]:
        return self._data

    @property
    def last_invalidations(self) -> Tuple[ResolvedInvalidation, ...]:
        return self._last_invalidations

    async def mutate(self, *args: Any, **kwargs: Any) -> R:
        if self._entity_id is None and self._entity_of is None:
            raise ValueError(f"{self._kind.value} requires an entity id")

        self._status = MutationStatus.PENDING
        self._error = None
        try:
            result = await self._write(*args, **kwargs)
        except Exception as e:
            self._status = MutationStatus.ERROR
            self._error = e
            logger.error("Failed to %s: %s", self._kind.value.replace("_", " "), e)
            if self._kind.is_positional:
                logger.warning(
                    "%s addresses transitions by position; refetch the list before retrying",
                    self._kind.value,
                )
            raise

        entity_id = self._entity_id
        if entity_id is None:
            entity_id = self._entity_of(result)

        self._last_invalidations = apply_invalidations(self._store, self._kind, entity_id)
        if self._on_success is not None:
            self._on_success(result)

        self._data = result
        self._status = MutationStatus.SUCCESS
        return result

    def reset(self) -> None:
        self._status = MutationStatus.IDLE
        self._error = None
        self._data = None

    def __repr__(self) -> str:
        return f"MutationBinding({self._kind.value}, entity={self._entity_id})"
