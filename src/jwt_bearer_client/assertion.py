"""Construction and signing of JWT client assertions (RFC 7523)."""
from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

import jwt

from .config import SUPPORTED_SIGNING_ALGORITHMS, ClientSettings
from .errors import ConfigurationError, SigningError
from .keyvault import KeyVault, SigningCertificate
from .models import JwtClaimSet

LOGGER = logging.getLogger(__name__)


class AssertionBuilder:
    """Builds signed client assertions with the certificate held in a key vault."""

    def __init__(
        self,
        settings: ClientSettings,
        key_vault: KeyVault,
        *,
        clock: Callable[[], float] = time.time,
        jti_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        if settings.jwt_signing_algo not in SUPPORTED_SIGNING_ALGORITHMS:
            raise ConfigurationError(f"Unsupported signing algorithm {settings.jwt_signing_algo!r}")
        self._settings = settings
        self._key_vault = key_vault
        self._clock = clock
        self._jti_factory = jti_factory

    def build_claims(self) -> JwtClaimSet:
        issued_at = int(self._clock())
        return JwtClaimSet(
            iss=self._settings.client_id,
            sub=self._settings.client_id,
            aud=self._settings.audience or self._settings.token_url,
            jti=self._jti_factory(),
            iat=issued_at,
            exp=issued_at + self._settings.jwt_expire_in_minutes * 60,
        )

    def build_signed_assertion(self) -> str:
        """Return a compact ``header.claims.signature`` assertion."""

        claims = self.build_claims()
        certificate = self._key_vault.obtain_certificate(self._settings.key_vault_certificate_name)
        return self._sign(claims, certificate)

    async def build_signed_assertion_async(self) -> str:
        claims = self.build_claims()
        certificate = await self._key_vault.obtain_certificate_async(self._settings.key_vault_certificate_name)
        return self._sign(claims, certificate)

    # -- internals --------------------------------------------------
    def _sign(self, claims: JwtClaimSet, certificate: SigningCertificate) -> str:
        algorithm = self._settings.jwt_signing_algo
        try:
            token = jwt.encode(
                claims.as_dict(),
                certificate.private_key,
                algorithm=algorithm,
                headers={"typ": None},
            )
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            raise SigningError(f"Unable to sign the client assertion: {exc}") from exc

        # Signature check only; timestamps follow the injected clock.
        try:
            jwt.decode(
                token,
                certificate.public_key,
                algorithms=[algorithm],
                options={"verify_exp": False, "verify_iat": False, "verify_nbf": False, "verify_aud": False},
            )
        except jwt.InvalidSignatureError as exc:
            raise SigningError(
                "The client assertion signature does not verify against the certificate public key"
            ) from exc
        except jwt.PyJWTError as exc:
            raise SigningError(f"Unable to verify the client assertion: {exc}") from exc

        LOGGER.debug("Signed client assertion with %s", algorithm)
        return token
