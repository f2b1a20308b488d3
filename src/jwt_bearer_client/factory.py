"""Composition root wiring caches, key vaults and the token exchange client."""
from __future__ import annotations

from typing import Callable, Iterable, Optional

from .backends import AzureKeyVaultBackend, SecretBackend
from .cache import Cache, InMemoryCache
from .client import TokenExchangeClient
from .config import CacheSettings, ClientSettings, KeyVaultSettings
from .keyvault import KeyVault
from .memory import MemoryStore
from .registry import NamedRegistry
from .transport import AsyncFormTransport, FormTransport

BackendFactory = Callable[[KeyVaultSettings], SecretBackend]


def create_client(
    client_settings: ClientSettings,
    key_vault_settings: Iterable[KeyVaultSettings],
    cache_settings: Iterable[CacheSettings] = (),
    *,
    store: Optional[MemoryStore] = None,
    backend_factory: BackendFactory = AzureKeyVaultBackend,
    transport: Optional[FormTransport] = None,
    async_transport: Optional[AsyncFormTransport] = None,
) -> TokenExchangeClient:
    """Build a :class:`TokenExchangeClient` and everything it depends on.

    One :class:`MemoryStore` is shared by every configured cache. The key vault
    named by ``client_settings.key_vault_settings_name`` signs the assertions.
    """

    store = store or MemoryStore()
    caches: NamedRegistry[Cache] = NamedRegistry(
        (InMemoryCache(settings, store) for settings in cache_settings), kind="cache"
    )
    key_vaults: NamedRegistry[KeyVault] = NamedRegistry(
        (KeyVault(settings, backend_factory(settings), caches) for settings in key_vault_settings),
        kind="key vault",
    )
    return TokenExchangeClient(
        client_settings,
        key_vaults.resolve(client_settings.key_vault_settings_name),
        transport=transport,
        async_transport=async_transport,
    )


def create_client_from_env(*, backend_factory: BackendFactory = AzureKeyVaultBackend) -> TokenExchangeClient:
    """Create a client from ``JWT_CLIENT_*``, ``JWT_KEY_VAULT_*`` and ``JWT_CACHE_*`` variables."""

    client_settings = ClientSettings.from_env()
    key_vault_settings = KeyVaultSettings.from_env()
    cache_settings = [CacheSettings.from_env()] if key_vault_settings.use_cache else []
    return create_client(
        client_settings,
        [key_vault_settings],
        cache_settings,
        backend_factory=backend_factory,
    )
