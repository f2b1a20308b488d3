"""Cache-aside access to secrets and signing certificates held in a trust store."""
from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from .backends import SecretBackend
from .cache import Cache
from .config import KeyVaultSettings
from .errors import CertificateError, ConfigurationError, NotFoundError, RemoteError, ValidationError
from .registry import NamedRegistry

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigningCertificate:
    """RSA key pair materialised from a stored certificate."""

    private_key: rsa.RSAPrivateKey
    certificate: Optional[x509.Certificate] = None

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        if self.certificate is not None:
            key = self.certificate.public_key()
            if not isinstance(key, rsa.RSAPublicKey):
                raise CertificateError("The certificate does not carry an RSA public key")
            return key
        return self.private_key.public_key()


def load_certificate(payload: Optional[str]) -> SigningCertificate:
    """Decode a base64 encoded PKCS#12 (DER) blob into a :class:`SigningCertificate`."""

    if not isinstance(payload, str) or not payload:
        raise CertificateError("The certificate payload is empty")
    try:
        der = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CertificateError("The certificate payload is not valid base64") from exc

    try:
        private_key, certificate, _ = pkcs12.load_key_and_certificates(der, None)
    except ValueError as exc:
        raise CertificateError(f"The certificate payload could not be parsed: {exc}") from exc

    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise CertificateError("The certificate does not contain an RSA private key")
    return SigningCertificate(private_key=private_key, certificate=certificate)


class KeyVault:
    """Named trust store that mirrors reads into an optional cache.

    The backend stays the source of truth: writes go to it first and only then
    to the cache, and deleting a cache entry never touches the backend.
    """

    def __init__(
        self,
        settings: KeyVaultSettings,
        backend: SecretBackend,
        caches: Optional[NamedRegistry[Cache]] = None,
    ):
        if not settings.name:
            raise ConfigurationError("The key vault settings are not initialised correctly, name is missing")
        self._settings = settings
        self._backend = backend
        self._cache: Optional[Cache] = None
        if settings.use_cache:
            if caches is None:
                raise ConfigurationError(f"The cache with name {settings.cache_settings_name} is not found")
            self._cache = caches.resolve(settings.cache_settings_name)

    @property
    def name(self) -> str:
        return self._settings.name

    @property
    def uses_cache(self) -> bool:
        return self._cache is not None

    # -- secrets ----------------------------------------------------
    def get_secret(self, name: str) -> str:
        _require(name, "The secret key/name is required")
        return self._read_through(name)

    async def get_secret_async(self, name: str) -> str:
        _require(name, "The secret key/name is required")
        return await self._read_through_async(name)

    def set_secret(self, name: str, value: str) -> bool:
        _require(name, "The secret key/name is required")
        _require(value, "The secret value is required")
        self._backend.set_secret(name, value)
        if self._cache is not None:
            return self._cache.set_value(name, value)
        return True

    async def set_secret_async(self, name: str, value: str) -> bool:
        _require(name, "The secret key/name is required")
        _require(value, "The secret value is required")
        await self._backend.set_secret_async(name, value)
        if self._cache is not None:
            return await self._cache.set_value_async(name, value)
        return True

    def obtain_list_of_secrets(self) -> List[str]:
        return list(self._backend.list_secret_names())

    async def obtain_list_of_secrets_async(self) -> List[str]:
        return list(await self._backend.list_secret_names_async())

    # -- certificates -----------------------------------------------
    def obtain_certificate(self, name: str) -> SigningCertificate:
        _require(name, "The certificate key/name is required")
        return load_certificate(self._read_through(name))

    async def obtain_certificate_async(self, name: str) -> SigningCertificate:
        _require(name, "The certificate key/name is required")
        return load_certificate(await self._read_through_async(name))

    # -- cache maintenance ------------------------------------------
    def delete_cache_entry(self, name: str) -> bool:
        _require(name, "The key/name is required to delete a cached entry")
        if self._cache is None:
            return True
        return self._cache.delete_entry(name)

    async def delete_cache_entry_async(self, name: str) -> bool:
        _require(name, "The key/name is required to delete a cached entry")
        if self._cache is None:
            return True
        return await self._cache.delete_entry_async(name)

    # -- internals --------------------------------------------------
    def _read_through(self, name: str) -> str:
        if self._cache is None:
            return self._backend.get_secret(name)
        try:
            return self._cache.get_value(name)
        except NotFoundError:
            LOGGER.debug("Key vault %s cache miss for %s", self.name, name)
        try:
            value = self._backend.get_secret(name)
            self._cache.set_value(name, value)
        except RemoteError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            raise RemoteError(f"Unable to load {name} from key vault {self.name}: {exc}") from exc
        return value

    async def _read_through_async(self, name: str) -> str:
        if self._cache is None:
            return await self._backend.get_secret_async(name)
        try:
            return await self._cache.get_value_async(name)
        except NotFoundError:
            LOGGER.debug("Key vault %s cache miss for %s", self.name, name)
        try:
            value = await self._backend.get_secret_async(name)
            await self._cache.set_value_async(name, value)
        except RemoteError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            raise RemoteError(f"Unable to load {name} from key vault {self.name}: {exc}") from exc
        return value


def _require(value: Optional[str], message: str) -> None:
    if not value:
        raise ValidationError(message)
