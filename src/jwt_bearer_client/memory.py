"""Single-flight, TTL-aware memoisation store.

Reads probe the entry map without locking. On a miss the caller takes the lock
belonging to the key, probes again and only then runs the factory. A failing
factory stores nothing and releases the lock, so callers that were waiting on
the same key will run their own factory afterwards: failures are not shared.

Blocking callers and asyncio callers use separate lock tables. Single-flight
holds among callers of the same flavour.

Expired entries stop being visible at once and are physically removed by
:meth:`MemoryStore.purge_expired`, which writes trigger every ``purge_interval``
seconds.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Hashable,
    Iterator,
    List,
    Optional,
    Union,
)

LOGGER = logging.getLogger(__name__)

TtlPolicy = Union[float, Callable[[Any], Optional[float]], None]

_MISSING = object()


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float] = None


class _LockTable:
    """Per-key locks that are dropped once nobody holds or waits on them."""

    def __init__(self, lock_factory: Callable[[], Any]):
        self._lock_factory = lock_factory
        self.guard = threading.Lock()
        self._slots: Dict[Hashable, List[Any]] = {}

    def __len__(self) -> int:
        with self.guard:
            return len(self._slots)

    def __contains__(self, key: Hashable) -> bool:
        """Whether *key* is held or awaited; the caller must hold :attr:`guard`."""

        return key in self._slots

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._checkout(key)
        try:
            with lock:
                yield
        finally:
            self._checkin(key)

    @asynccontextmanager
    async def hold_async(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._checkout(key)
        try:
            async with lock:
                yield
        finally:
            self._checkin(key)

    def _checkout(self, key: Hashable) -> Any:
        with self.guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = [self._lock_factory(), 0]
                self._slots[key] = slot
            slot[1] += 1
            return slot[0]

    def _checkin(self, key: Hashable) -> None:
        with self.guard:
            slot = self._slots[key]
            slot[1] -= 1
            if slot[1] == 0:
                del self._slots[key]


class MemoryStore:
    """Key/value store with per-key locking and optional expiry."""

    def __init__(
        self,
        *,
        default_ttl: Optional[float] = None,
        purge_interval: Optional[float] = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._default_ttl = default_ttl
        self._purge_interval = purge_interval
        self._clock = clock
        self._next_purge = None if purge_interval is None else clock() + purge_interval
        self._entries: Dict[Hashable, _Entry] = {}
        self._locks = _LockTable(threading.Lock)
        self._async_locks = _LockTable(asyncio.Lock)

    # -- lock-free probes -------------------------------------------
    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the live value stored under *key* or *default*."""

        value = self._lookup(key)
        return default if value is _MISSING else value

    def exists(self, key: Hashable) -> bool:
        return self._lookup(key) is not _MISSING

    def __len__(self) -> int:
        return sum(1 for key in list(self._entries) if self.exists(key))

    @property
    def pending_locks(self) -> int:
        """Number of per-key locks currently held or awaited."""

        return len(self._locks) + len(self._async_locks)

    # -- blocking API -----------------------------------------------
    def get_or_create(self, key: Hashable, factory: Callable[[], Any], ttl: TtlPolicy = None) -> Any:
        """Return the cached value for *key*, running *factory* at most once per miss."""

        value = self._lookup(key)
        if value is not _MISSING:
            return value

        with self._locks.hold(key):
            value = self._lookup(key)
            if value is not _MISSING:
                return value
            LOGGER.debug("Cache miss for %r, creating value", key)
            value = factory()
            self._store(key, value, ttl)
            return value

    def set(self, key: Hashable, value: Any, ttl: TtlPolicy = None) -> None:
        """Store *value* under *key*, replacing any previous entry."""

        with self._locks.hold(key):
            self._store(key, value, ttl)

    def delete(self, key: Hashable) -> bool:
        """Remove *key*; deleting an absent key still succeeds."""

        with self._locks.hold(key):
            self._entries.pop(key, None)
        return True

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed.

        Keys whose lock is currently held or awaited are left to their owner.
        Both lock-table guards are held while scanning, so no other caller can
        start working on a key that is being removed.
        """

        removed = 0
        with self._locks.guard, self._async_locks.guard:
            for key, entry in list(self._entries.items()):
                if key in self._locks or key in self._async_locks:
                    continue
                if self._is_expired(entry):
                    del self._entries[key]
                    removed += 1
        if removed:
            LOGGER.debug("Purged %d expired cache entries", removed)
        return removed

    # -- asyncio API ------------------------------------------------
    async def get_or_create_async(
        self,
        key: Hashable,
        factory: Callable[[], Awaitable[Any]],
        ttl: TtlPolicy = None,
    ) -> Any:
        """Async counterpart of :meth:`get_or_create`; *factory* returns an awaitable."""

        value = self._lookup(key)
        if value is not _MISSING:
            return value

        async with self._async_locks.hold_async(key):
            value = self._lookup(key)
            if value is not _MISSING:
                return value
            LOGGER.debug("Cache miss for %r, creating value", key)
            value = await factory()
            self._store(key, value, ttl)
            return value

    async def set_async(self, key: Hashable, value: Any, ttl: TtlPolicy = None) -> None:
        async with self._async_locks.hold_async(key):
            self._store(key, value, ttl)

    async def delete_async(self, key: Hashable) -> bool:
        async with self._async_locks.hold_async(key):
            self._entries.pop(key, None)
        return True

    # -- internals --------------------------------------------------
    def _lookup(self, key: Hashable) -> Any:
        entry = self._entries.get(key)
        if entry is None or self._is_expired(entry):
            return _MISSING
        return entry.value

    def _is_expired(self, entry: _Entry) -> bool:
        return entry.expires_at is not None and self._clock() >= entry.expires_at

    def _store(self, key: Hashable, value: Any, ttl: TtlPolicy) -> None:
        if callable(ttl):
            ttl = ttl(value)
        if ttl is None:
            ttl = self._default_ttl
        expires_at = None if ttl is None else self._clock() + ttl
        self._entries[key] = _Entry(value=value, expires_at=expires_at)
        self._maybe_purge()

    def _maybe_purge(self) -> None:
        if self._next_purge is None or self._clock() < self._next_purge:
            return
        self._next_purge = self._clock() + self._purge_interval
        self.purge_expired()
