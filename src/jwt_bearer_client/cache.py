"""Named cache facade over :class:`~jwt_bearer_client.memory.MemoryStore`."""
from __future__ import annotations

from datetime import timedelta
from typing import Optional, Protocol

from .config import CacheSettings
from .errors import NotFoundError
from .memory import MemoryStore


class Cache(Protocol):
    """Capabilities the credential provider expects from a cache."""

    @property
    def name(self) -> str: ...

    def get_value(self, identifier: str) -> str: ...

    async def get_value_async(self, identifier: str) -> str: ...

    def set_value(self, identifier: str, value: str, expiration: Optional[timedelta] = None) -> bool: ...

    async def set_value_async(self, identifier: str, value: str, expiration: Optional[timedelta] = None) -> bool: ...

    def delete_entry(self, identifier: str) -> bool: ...

    async def delete_entry_async(self, identifier: str) -> bool: ...

    def does_identifier_exist(self, identifier: str) -> bool: ...


class InMemoryCache:
    """Process-local cache; several named caches may share one store."""

    def __init__(self, settings: CacheSettings, store: MemoryStore):
        self._settings = settings
        self._store = store

    @property
    def name(self) -> str:
        return self._settings.name

    def get_value(self, identifier: str) -> str:
        """Return the cached value or raise :class:`NotFoundError`."""

        return self._store.get_or_create(self._key(identifier), lambda: self._missing(identifier))

    async def get_value_async(self, identifier: str) -> str:
        async def missing() -> str:
            return self._missing(identifier)

        return await self._store.get_or_create_async(self._key(identifier), missing)

    def set_value(self, identifier: str, value: str, expiration: Optional[timedelta] = None) -> bool:
        self._store.set(self._key(identifier), value, self._ttl(expiration))
        return True

    async def set_value_async(self, identifier: str, value: str, expiration: Optional[timedelta] = None) -> bool:
        await self._store.set_async(self._key(identifier), value, self._ttl(expiration))
        return True

    def delete_entry(self, identifier: str) -> bool:
        return self._store.delete(self._key(identifier))

    async def delete_entry_async(self, identifier: str) -> bool:
        return await self._store.delete_async(self._key(identifier))

    def does_identifier_exist(self, identifier: str) -> bool:
        return self._store.exists(self._key(identifier))

    # -- internals --------------------------------------------------
    def _key(self, identifier: str) -> tuple:
        return (self._settings.name, identifier)

    def _ttl(self, expiration: Optional[timedelta]) -> Optional[float]:
        if expiration is not None:
            return expiration.total_seconds()
        return self._settings.default_ttl_seconds

    def _missing(self, identifier: str) -> str:
        raise NotFoundError(f"No value found for key: {identifier}")
