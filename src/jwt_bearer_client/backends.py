"""Trust-store backends holding named secrets and certificates."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Callable, List, Optional, Protocol

from azure.core.exceptions import AzureError, HttpResponseError
from azure.identity import ClientSecretCredential, DefaultAzureCredential
from azure.identity.aio import ClientSecretCredential as AsyncClientSecretCredential
from azure.identity.aio import DefaultAzureCredential as AsyncDefaultAzureCredential
from azure.keyvault.secrets import SecretClient
from azure.keyvault.secrets.aio import SecretClient as AsyncSecretClient

from .config import KeyVaultSettings
from .errors import ConfigurationError, RemoteError

LOGGER = logging.getLogger(__name__)


class SecretBackend(Protocol):
    """Source of truth for secrets and certificate payloads."""

    def get_secret(self, name: str) -> str: ...

    async def get_secret_async(self, name: str) -> str: ...

    def set_secret(self, name: str, value: str) -> None: ...

    async def set_secret_async(self, name: str, value: str) -> None: ...

    def list_secret_names(self) -> List[str]: ...

    async def list_secret_names_async(self) -> List[str]: ...


class AzureKeyVaultBackend:
    """Reads and writes secrets stored in an Azure Key Vault.

    Certificates imported into Key Vault are exposed as secrets whose value is
    the base64 encoded PKCS#12 blob, which is what the credential provider reads.
    """

    def __init__(
        self,
        settings: KeyVaultSettings,
        *,
        client: Optional[Any] = None,
        async_client_factory: Optional[Callable[[], AsyncContextManager[Any]]] = None,
    ):
        if not settings.vault_url:
            raise ConfigurationError(f"Key vault {settings.name!r} has no vault URL")
        if not settings.use_managed_identity and not (
            settings.tenant_id and settings.client_id and settings.client_secret
        ):
            raise ConfigurationError(
                f"Key vault {settings.name!r} needs tenant_id, client_id and client_secret "
                "unless managed identity is used"
            )
        self._settings = settings
        self._client = client
        self._async_client_factory = async_client_factory or self._open_async_client

    # -- blocking API -----------------------------------------------
    def get_secret(self, name: str) -> str:
        LOGGER.debug("Fetching secret %s from key vault %s", name, self._settings.name)
        try:
            return self._sync_client().get_secret(name).value
        except AzureError as exc:
            raise self._wrap(f"read secret {name}", exc) from exc

    def set_secret(self, name: str, value: str) -> None:
        LOGGER.debug("Storing secret %s in key vault %s", name, self._settings.name)
        try:
            self._sync_client().set_secret(name, value)
        except AzureError as exc:
            raise self._wrap(f"store secret {name}", exc) from exc

    def list_secret_names(self) -> List[str]:
        try:
            return [item.name for item in self._sync_client().list_properties_of_secrets()]
        except AzureError as exc:
            raise self._wrap("list secrets", exc) from exc

    # -- asyncio API ------------------------------------------------
    async def get_secret_async(self, name: str) -> str:
        LOGGER.debug("Fetching secret %s from key vault %s", name, self._settings.name)
        try:
            async with self._async_client_factory() as client:
                secret = await client.get_secret(name)
                return secret.value
        except AzureError as exc:
            raise self._wrap(f"read secret {name}", exc) from exc

    async def set_secret_async(self, name: str, value: str) -> None:
        LOGGER.debug("Storing secret %s in key vault %s", name, self._settings.name)
        try:
            async with self._async_client_factory() as client:
                await client.set_secret(name, value)
        except AzureError as exc:
            raise self._wrap(f"store secret {name}", exc) from exc

    async def list_secret_names_async(self) -> List[str]:
        try:
            async with self._async_client_factory() as client:
                return [item.name async for item in client.list_properties_of_secrets()]
        except AzureError as exc:
            raise self._wrap("list secrets", exc) from exc

    # -- internals --------------------------------------------------
    def _sync_client(self) -> Any:
        if self._client is None:
            if self._settings.use_managed_identity:
                credential = DefaultAzureCredential()
            else:
                credential = ClientSecretCredential(
                    self._settings.tenant_id, self._settings.client_id, self._settings.client_secret
                )
            self._client = SecretClient(vault_url=self._settings.vault_url, credential=credential)
        return self._client

    @asynccontextmanager
    async def _open_async_client(self) -> AsyncIterator[AsyncSecretClient]:
        if self._settings.use_managed_identity:
            credential = AsyncDefaultAzureCredential()
        else:
            credential = AsyncClientSecretCredential(
                self._settings.tenant_id, self._settings.client_id, self._settings.client_secret
            )
        async with credential:
            async with AsyncSecretClient(vault_url=self._settings.vault_url, credential=credential) as client:
                yield client

    def _wrap(self, action: str, exc: AzureError) -> RemoteError:
        status_code = exc.status_code if isinstance(exc, HttpResponseError) else None
        return RemoteError(
            f"Key vault {self._settings.name} failed to {action}: {exc.message}",
            status_code=status_code,
        )
