"""Reuse of access tokens acquired with the client credentials flow."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .client import TokenExchangeClient
from .memory import MemoryStore
from .models import AuthorizationToken

LOGGER = logging.getLogger(__name__)

# Tokens are dropped slightly before real expiry so callers never send a stale one.
SAFETY_WINDOW_SECONDS = 60.0


class TokenProvider:
    """Hands out a valid access token, exchanging a new assertion when needed.

    Concurrent callers asking for the same client and scope share one exchange.
    There is no background refresh: a new token is fetched lazily on the first
    request after the cached one runs out.
    """

    def __init__(
        self,
        client: TokenExchangeClient,
        store: MemoryStore,
        *,
        safety_window: float = SAFETY_WINDOW_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._client = client
        self._store = store
        self._safety_window = safety_window
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        settings = client.settings
        self._key = ("access-token", settings.token_url, settings.client_id, settings.scope or "")

    def get_token(self) -> AuthorizationToken:
        """Return a valid access token, exchanging a new assertion when necessary."""

        return self._store.get_or_create(self._key, self._exchange, ttl=self._retention)

    async def get_token_async(self) -> AuthorizationToken:
        return await self._store.get_or_create_async(
            self._key, self._client.exchange_client_assertion_async, ttl=self._retention
        )

    def invalidate(self) -> bool:
        """Forget the cached token, e.g. after the resource server rejected it."""

        return self._store.delete(self._key)

    async def invalidate_async(self) -> bool:
        return await self._store.delete_async(self._key)

    # ------------------------------------------------------------------ #
    def _exchange(self) -> AuthorizationToken:
        LOGGER.info("Requesting new access token for client %s", self._client.settings.client_id)
        return self._client.exchange_client_assertion()

    def _retention(self, token: AuthorizationToken) -> float:
        return max(0.0, token.seconds_remaining(self._clock()) - self._safety_window)
