"""
Resource Store

Keyed cache of remote resources: key → {data, fetch status, freshness}.

GUARANTEES:
===========
1. A fresh entry is returned without a network call
2. Concurrent reads of one key share one in-flight fetch
3. invalidate() makes the next read of every matched key hit the network
4. A fetch that started before an invalidation may still land its result,
   but that result stays stale
5. A failed fetch leaves the previous data in place and records the error
6. A fetch whose key was purged by remove() hands its result to waiting
   readers but stores nothing
7. clear() cancels in-flight fetches; readers waiting on them get
   CacheClearedError

WHAT THIS STORE MUST NOT DO:
============================
- Merge or patch cached values (writes are authoritative, reads advisory)
- Retry failed fetches
- Lock: correctness comes from invalidation, not mutual exclusion
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
import asyncio
import logging
import time

from .keys import CacheKey, key_matches


logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


class CacheClearedError(Exception):
    """The store was cleared while a read was waiting on its fetch."""


class FetchStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class CacheEntry:
    """
    Mutable bookkeeping for one key.

    data_generation records which invalidation generation produced the
    current data; a late result from an older generation never replaces
    data from a newer one.
    """
    key: CacheKey
    data: Any = None
    status: FetchStatus = FetchStatus.IDLE
    error: Optional[BaseException] = None
    updated_at: Optional[float] = None
    last_accessed: float = 0.0
    invalidated: bool = False
    data_generation: int = -1
    gc_time: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.updated_at is not None

    def is_fresh(self, now: float, stale_time: Optional[float]) -> bool:
        if self.updated_at is None or self.invalidated:
            return False
        if stale_time is None:
            return True
        return (now - self.updated_at) < stale_time


class ResourceStore:
    """
    Explicit, injectable cache owned by one SyncContext.

    Init is an empty store; teardown is clear().
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._generations: Dict[CacheKey, int] = {}
        self._inflight: Dict[CacheKey, Tuple[int, asyncio.Task]] = {}

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def entry(self, key: CacheKey) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def keys(self) -> Tuple[CacheKey, ...]:
        return tuple(self._entries)

    def status(self, key: CacheKey) -> FetchStatus:
        entry = self._entries.get(key)
        return entry.status if entry is not None else FetchStatus.IDLE

    def generation(self, key: CacheKey) -> int:
        return self._generations.get(key, 0)

    def is_fetching(self, key: CacheKey) -> bool:
        return key in self._inflight

    def is_stale(self, key: CacheKey, stale_time: Optional[float]) -> bool:
        entry = self._entries.get(key)
        return entry is None or not entry.is_fresh(self._clock(), stale_time)

    def peek(self, key: CacheKey, stale_time: Optional[float]) -> Any:
        """Fresh data for key, or None. Never fetches."""
        entry = self._entries.get(key)
        now = self._clock()
        if entry is None or not entry.is_fresh(now, stale_time):
            return None
        entry.last_accessed = now
        return entry.data

    # =========================================================================
    # READ PATH
    # =========================================================================

    async def fetch(
        self,
        key: CacheKey,
        fetcher: Fetcher,
        stale_time: Optional[float],
        force: bool = False,
        gc_time: Optional[float] = None,
    ) -> Any:
        """
        Get-or-fetch.

        A consumer that stops waiting (cancellation) does not cancel the
        underlying fetch; it still completes and populates the cache.
        """
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None:
            entry.last_accessed = now
            if gc_time is not None:
                entry.gc_time = gc_time

        if not force and entry is not None and entry.is_fresh(now, stale_time):
            logger.debug("Cache hit %s", key)
            return entry.data

        generation = self.generation(key)
        inflight = self._inflight.get(key)
        if inflight is not None and inflight[0] == generation:
            logger.debug("Joining in-flight fetch %s", key)
            return await self._await_shared(key, inflight[1])

        if entry is None:
            entry = CacheEntry(key=key, last_accessed=now, gc_time=gc_time)
            self._entries[key] = entry
        entry.status = FetchStatus.LOADING
        entry.error = None

        logger.debug("Fetching %s (generation %d)", key, generation)
        task = asyncio.ensure_future(self._run(key, fetcher, generation))
        self._inflight[key] = (generation, task)
        task.add_done_callback(lambda done: self._settle(key, done))
        return await self._await_shared(key, task)

    async def _await_shared(self, key: CacheKey, task: asyncio.Task) -> Any:
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # Shared tasks are cancelled only by clear()
            if task.cancelled():
                raise CacheClearedError(f"Cache cleared while fetching {key}") from None
            raise

    async def _run(self, key: CacheKey, fetcher: Fetcher, generation: int) -> Any:
        try:
            data = await fetcher()
        except Exception as e:
            entry = self._entries.get(key)
            if entry is not None and (
                self.generation(key) == generation
                or not self._fetching_newer(key, generation)
            ):
                entry.status = FetchStatus.ERROR
                entry.error = e
            raise

        self._store_result(key, data, generation)
        return data

    def _store_result(self, key: CacheKey, data: Any, generation: int) -> None:
        current = self.generation(key)
        entry = self._entries.get(key)
        if entry is None:
            # Purged while in flight
            logger.debug("Dropping result for purged key %s", key)
            return
        if entry.data_generation > generation:
            return

        entry.data = data
        entry.updated_at = self._clock()
        entry.data_generation = generation
        entry.invalidated = generation != current
        if generation == current:
            entry.status = FetchStatus.SUCCESS
            entry.error = None
        elif entry.status is FetchStatus.LOADING and not self._fetching_newer(key, generation):
            entry.status = FetchStatus.SUCCESS

    def _fetching_newer(self, key: CacheKey, generation: int) -> bool:
        inflight = self._inflight.get(key)
        return inflight is not None and inflight[0] > generation

    def _settle(self, key: CacheKey, task: asyncio.Task) -> None:
        inflight = self._inflight.get(key)
        if inflight is not None and inflight[1] is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark the exception retrieved; consumers already received it
            task.exception()

    # =========================================================================
    # WRITE PATH
    # =========================================================================

    def set_data(self, key: CacheKey, data: Any, gc_time: Optional[float] = None) -> None:
        """Seed a fresh value directly (e.g. the response of a create)."""
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        entry.data = data
        entry.status = FetchStatus.SUCCESS
        entry.error = None
        entry.updated_at = now
        entry.last_accessed = now
        entry.invalidated = False
        entry.data_generation = self.generation(key)
        if gc_time is not None:
            entry.gc_time = gc_time

    def invalidate(self, pattern: CacheKey, exact: bool = False) -> int:
        """Mark every matching key stale. Returns the number of keys touched."""
        matched = self._matching(pattern, exact)
        for key in matched:
            self._bump(key)
            entry = self._entries.get(key)
            if entry is not None:
                entry.invalidated = True
        if matched:
            logger.debug("Invalidated %d key(s) under %s", len(matched), pattern)
        return len(matched)

    def remove(self, pattern: CacheKey, exact: bool = False) -> int:
        """Purge every matching key. Returns the number of entries removed."""
        matched = self._matching(pattern, exact)
        removed = 0
        for key in matched:
            self._bump(key)
            if self._entries.pop(key, None) is not None:
                removed += 1
        if removed:
            logger.debug("Removed %d key(s) under %s", removed, pattern)
        return removed

    def collect_garbage(self) -> int:
        """Drop idle entries whose gc window has elapsed since last access."""
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items()
            if entry.gc_time is not None
            and key not in self._inflight
            and now - entry.last_accessed > entry.gc_time
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        """Drop everything. Waiting readers get CacheClearedError."""
        for _, task in self._inflight.values():
            task.cancel()
        self._inflight.clear()
        self._entries.clear()
        self._generations.clear()

    def _matching(self, pattern: CacheKey, exact: bool) -> Tuple[CacheKey, ...]:
        candidates = set(self._entries) | set(self._inflight)
        return tuple(k for k in candidates if key_matches(k, pattern, exact))

    def _bump(self, key: CacheKey) -> None:
        self._generations[key] = self.generation(key) + 1

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries
