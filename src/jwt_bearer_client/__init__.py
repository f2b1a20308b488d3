"""JWT bearer client package."""
from .assertion import AssertionBuilder
from .auth import TokenProvider
from .cache import InMemoryCache
from .client import TokenExchangeClient
from .config import CacheSettings, ClientSettings, KeyVaultSettings
from .errors import (
    CertificateError,
    ConfigurationError,
    NotFoundError,
    RemoteError,
    SigningError,
    TokenClientError,
    ValidationError,
)
from .factory import create_client, create_client_from_env
from .keyvault import KeyVault, SigningCertificate, load_certificate
from .memory import MemoryStore
from .models import AuthorizationToken, JwtClaimSet
from .registry import NamedRegistry

__all__ = [
    "AssertionBuilder",
    "AuthorizationToken",
    "CacheSettings",
    "CertificateError",
    "ClientSettings",
    "ConfigurationError",
    "InMemoryCache",
    "JwtClaimSet",
    "KeyVault",
    "KeyVaultSettings",
    "MemoryStore",
    "NamedRegistry",
    "NotFoundError",
    "RemoteError",
    "SigningCertificate",
    "SigningError",
    "TokenClientError",
    "TokenExchangeClient",
    "TokenProvider",
    "ValidationError",
    "create_client",
    "create_client_from_env",
    "load_certificate",
]
