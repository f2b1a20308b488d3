"""Configuration utilities for the JWT bearer client."""
from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional

from .errors import ConfigurationError

DEFAULT_CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
SUPPORTED_SIGNING_ALGORITHMS = ("RS256", "RS384", "RS512")


@dataclass(frozen=True)
class CacheSettings:
    """Settings for a named in-memory cache."""

    name: str
    use_expiration: bool = False
    default_expiration_days: int = 7

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("The cache settings require a name")
        if self.default_expiration_days <= 0:
            raise ConfigurationError("default_expiration_days must be positive")

    @property
    def default_ttl_seconds(self) -> Optional[float]:
        """Retention for entries written without an explicit TTL."""

        if not self.use_expiration:
            return None
        return float(self.default_expiration_days * 24 * 60 * 60)

    @staticmethod
    def from_env(prefix: str = "JWT_CACHE_") -> "CacheSettings":
        return CacheSettings(
            name=os.getenv(f"{prefix}NAME") or "memory",
            use_expiration=_env_flag(f"{prefix}USE_EXPIRATION"),
            default_expiration_days=_env_int(f"{prefix}DEFAULT_EXPIRATION_DAYS", 7),
        )


@dataclass(frozen=True)
class KeyVaultSettings:
    """Settings for a named trust store instance backed by Azure Key Vault."""

    name: str
    vault_url: str
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    use_managed_identity: bool = False
    use_cache: bool = False
    cache_settings_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("The key vault settings require a name")
        if self.use_cache and not self.cache_settings_name:
            raise ConfigurationError(
                f"Key vault {self.name!r} enables caching but names no cache settings"
            )

    @staticmethod
    def from_env(prefix: str = "JWT_KEY_VAULT_") -> "KeyVaultSettings":
        """Create a :class:`KeyVaultSettings` instance from environment variables.

        ``<prefix>NAME`` and ``<prefix>URL`` are required. Unless
        ``<prefix>USE_MANAGED_IDENTITY`` is set, the service principal is read
        from ``<prefix>TENANT_ID``, ``<prefix>CLIENT_ID`` and ``<prefix>CLIENT_SECRET``.
        """

        return KeyVaultSettings(
            name=_require_env(f"{prefix}NAME"),
            vault_url=_require_env(f"{prefix}URL"),
            tenant_id=os.getenv(f"{prefix}TENANT_ID") or None,
            client_id=os.getenv(f"{prefix}CLIENT_ID") or None,
            client_secret=os.getenv(f"{prefix}CLIENT_SECRET") or None,
            use_managed_identity=_env_flag(f"{prefix}USE_MANAGED_IDENTITY"),
            use_cache=_env_flag(f"{prefix}USE_CACHE"),
            cache_settings_name=os.getenv(f"{prefix}CACHE_SETTINGS_NAME") or None,
        )


@dataclass(frozen=True)
class ClientSettings:
    """Settings used by the assertion builder and the token exchange client."""

    authorization_server: str
    client_id: str
    key_vault_certificate_name: str
    key_vault_settings_name: str
    suffix_token_endpoint: str = "/connect/token"
    scope: Optional[str] = None
    audience: Optional[str] = None
    client_assertion_type: str = DEFAULT_CLIENT_ASSERTION_TYPE
    jwt_expire_in_minutes: int = 5
    jwt_signing_algo: str = "RS512"
    timeout: float = 10.0

    def __post_init__(self) -> None:
        for field_name in (
            "authorization_server",
            "client_id",
            "key_vault_certificate_name",
            "key_vault_settings_name",
        ):
            if not getattr(self, field_name):
                raise ConfigurationError(f"Missing required client setting: {field_name}")
        if self.jwt_expire_in_minutes <= 0:
            raise ConfigurationError("jwt_expire_in_minutes must be positive")
        if self.jwt_signing_algo not in SUPPORTED_SIGNING_ALGORITHMS:
            raise ConfigurationError(
                f"Unsupported signing algorithm {self.jwt_signing_algo!r}; "
                f"expected one of {', '.join(SUPPORTED_SIGNING_ALGORITHMS)}"
            )

    @property
    def token_url(self) -> str:
        return f"{self.authorization_server.rstrip('/')}{self.suffix_token_endpoint}"

    @staticmethod
    def from_env(prefix: str = "JWT_CLIENT_") -> "ClientSettings":
        """Create a :class:`ClientSettings` instance from environment variables.

        Parameters
        ----------
        prefix:
            Prefix used for environment variables. The defaults expect
            ``JWT_CLIENT_AUTHORIZATION_SERVER``, ``JWT_CLIENT_CLIENT_ID``,
            ``JWT_CLIENT_KEY_VAULT_CERTIFICATE_NAME`` and
            ``JWT_CLIENT_KEY_VAULT_SETTINGS_NAME``.
        """

        timeout_raw = os.getenv(f"{prefix}TIMEOUT", "10")
        try:
            timeout = float(timeout_raw)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid timeout value provided via {prefix}TIMEOUT") from exc

        return ClientSettings(
            authorization_server=_require_env(f"{prefix}AUTHORIZATION_SERVER"),
            client_id=_require_env(f"{prefix}CLIENT_ID"),
            key_vault_certificate_name=_require_env(f"{prefix}KEY_VAULT_CERTIFICATE_NAME"),
            key_vault_settings_name=_require_env(f"{prefix}KEY_VAULT_SETTINGS_NAME"),
            suffix_token_endpoint=os.getenv(f"{prefix}SUFFIX_TOKEN_ENDPOINT") or "/connect/token",
            scope=os.getenv(f"{prefix}SCOPE") or None,
            audience=os.getenv(f"{prefix}AUDIENCE") or None,
            client_assertion_type=os.getenv(f"{prefix}CLIENT_ASSERTION_TYPE") or DEFAULT_CLIENT_ASSERTION_TYPE,
            jwt_expire_in_minutes=_env_int(f"{prefix}JWT_EXPIRE_IN_MINUTES", 5),
            jwt_signing_algo=os.getenv(f"{prefix}JWT_SIGNING_ALGO") or "RS512",
            timeout=timeout,
        )


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ConfigurationError(f"Missing required configuration variable: {name}")
    return value


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value provided via {name}") from exc
