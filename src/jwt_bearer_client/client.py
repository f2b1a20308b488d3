"""Client credentials exchange authenticated with a signed JWT assertion."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from .assertion import AssertionBuilder
from .config import ClientSettings
from .errors import RemoteError
from .keyvault import KeyVault
from .models import AuthorizationToken
from .transport import AsyncFormTransport, FormTransport, HttpResponse, HttpxTransport, UrllibTransport

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenExchangeClient:
    """Exchanges a freshly signed client assertion for an access token.

    Every call signs a new assertion with a new ``jti`` and issues exactly one
    request; nothing is retried.
    """

    def __init__(
        self,
        settings: ClientSettings,
        key_vault: KeyVault,
        *,
        assertion_builder: Optional[AssertionBuilder] = None,
        transport: Optional[FormTransport] = None,
        async_transport: Optional[AsyncFormTransport] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._settings = settings
        self._key_vault = key_vault
        self._assertion_builder = assertion_builder or AssertionBuilder(settings, key_vault)
        self._transport = transport or UrllibTransport(timeout=settings.timeout)
        self._async_transport = async_transport or HttpxTransport(timeout=settings.timeout)
        self._clock = clock

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def key_vault(self) -> KeyVault:
        return self._key_vault

    @property
    def assertion_builder(self) -> AssertionBuilder:
        return self._assertion_builder

    # -- token exchange ---------------------------------------------
    def exchange_client_assertion(self) -> AuthorizationToken:
        """Obtain a new access token from the authorization server."""

        fields = self._form_fields(self._assertion_builder.build_signed_assertion())
        LOGGER.debug("Requesting access token from %s", self._settings.token_url)
        response = self._transport.post_form(self._settings.token_url, fields)
        return self._parse_token(response, self._clock())

    async def exchange_client_assertion_async(self) -> AuthorizationToken:
        fields = self._form_fields(await self._assertion_builder.build_signed_assertion_async())
        LOGGER.debug("Requesting access token from %s", self._settings.token_url)
        response = await self._async_transport.post_form(self._settings.token_url, fields)
        return self._parse_token(response, self._clock())

    # -- cache maintenance ------------------------------------------
    def delete_cached_certificate(self) -> bool:
        """Drop the signing certificate from the key vault cache."""

        return self._key_vault.delete_cache_entry(self._settings.key_vault_certificate_name)

    async def delete_cached_certificate_async(self) -> bool:
        return await self._key_vault.delete_cache_entry_async(self._settings.key_vault_certificate_name)

    # -- helpers ----------------------------------------------------
    def _form_fields(self, assertion: str) -> Dict[str, str]:
        fields = {
            "grant_type": "client_credentials",
            "client_id": self._settings.client_id,
            "client_assertion_type": self._settings.client_assertion_type,
            "client_assertion": assertion,
        }
        if self._settings.scope:
            fields["scope"] = self._settings.scope
        return fields

    def _parse_token(self, response: HttpResponse, received_at: datetime) -> AuthorizationToken:
        if not response.is_success:
            LOGGER.warning(
                "Token endpoint %s answered with status %s", self._settings.token_url, response.status_code
            )
            raise RemoteError(
                f"Failed status code: {response.status_code} Message: {response.body}",
                status_code=response.status_code,
                body=response.body,
            )

        try:
            data = json.loads(response.body)
            access_token = _require_str(data, "access_token")
            token_type = _require_str(data, "token_type")
            expires_in = _require_seconds(data, "expires_in")
        except (ValueError, TypeError, KeyError) as exc:
            raise RemoteError(
                f"Access token response is malformed: {exc}",
                status_code=response.status_code,
                body=response.body,
            ) from exc

        return AuthorizationToken(
            access_token=access_token,
            token_type=token_type,
            expires_at=received_at + timedelta(seconds=expires_in),
        )


def _require_str(data: Dict[str, Any], name: str) -> str:
    value = data[name]
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string")
    return value


def _require_seconds(data: Dict[str, Any], name: str) -> int:
    value = data[name]
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer")
    if isinstance(value, str):
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    return value
