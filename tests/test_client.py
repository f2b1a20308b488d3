import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from conftest import CERTIFICATE_NAME, FakeBackend, FakeTransport
from jwt_bearer_client.client import TokenExchangeClient
from jwt_bearer_client.config import DEFAULT_CLIENT_ASSERTION_TYPE, ClientSettings
from jwt_bearer_client.errors import RemoteError
from jwt_bearer_client.keyvault import KeyVault
from jwt_bearer_client.transport import HttpxTransport

SUCCESS_BODY = json.dumps({"access_token": "abc123", "expires_in": 3600, "token_type": "Bearer"})


def test_successful_exchange_returns_token(client_settings: ClientSettings, cached_vault: KeyVault) -> None:
    transport = FakeTransport(200, SUCCESS_BODY)
    client = TokenExchangeClient(client_settings, cached_vault, transport=transport)

    token = client.exchange_client_assertion()

    assert token.access_token == "abc123"
    assert token.token_type == "Bearer"
    expected = datetime.now(timezone.utc) + timedelta(seconds=3600)
    assert abs((token.expires_at - expected).total_seconds()) < 1
    assert token.authorization_header == {"Authorization": "Bearer abc123"}


def test_request_carries_client_assertion_form(client_settings: ClientSettings, cached_vault: KeyVault) -> None:
    transport = FakeTransport(200, SUCCESS_BODY)
    TokenExchangeClient(client_settings, cached_vault, transport=transport).exchange_client_assertion()

    url, fields = transport.requests[0]
    assert url == "https://login.example.test/connect/token"
    assert fields["grant_type"] == "client_credentials"
    assert fields["client_id"] == "service-a"
    assert fields["client_assertion_type"] == DEFAULT_CLIENT_ASSERTION_TYPE
    assert fields["client_assertion"].count(".") == 2
    assert fields["scope"] == "orders.read"


def test_scope_is_omitted_when_not_configured(client_settings: ClientSettings, cached_vault: KeyVault) -> None:
    transport = FakeTransport(200, SUCCESS_BODY)
    settings = replace(client_settings, scope=None)
    TokenExchangeClient(settings, cached_vault, transport=transport).exchange_client_assertion()

    assert "scope" not in transport.requests[0][1]


def test_each_call_sends_a_new_assertion(client_settings: ClientSettings, cached_vault: KeyVault) -> None:
    transport = FakeTransport(200, SUCCESS_BODY)
    client = TokenExchangeClient(client_settings, cached_vault, transport=transport)

    client.exchange_client_assertion()
    client.exchange_client_assertion()

    first, second = (fields["client_assertion"] for _, fields in transport.requests)
    assert first != second


def test_error_status_raises_remote_error(client_settings: ClientSettings, cached_vault: KeyVault) -> None:
    body = '{"error":"invalid_client"}'
    client = TokenExchangeClient(client_settings, cached_vault, transport=FakeTransport(400, body))

    with pytest.raises(RemoteError) as excinfo:
        client.exchange_client_assertion()

    assert excinfo.value.status_code == 400
    assert excinfo.value.body == body
    assert body in str(excinfo.value)


@pytest.mark.parametrize(
    "body",
    [
        "not json",
        json.dumps({"expires_in": 3600, "token_type": "Bearer"}),
        json.dumps({"access_token": "abc", "expires_in": "soon", "token_type": "Bearer"}),
        json.dumps({"access_token": "abc", "expires_in": 3600}),
        json.dumps(["abc"]),
    ],
)
def test_malformed_success_body_raises(client_settings: ClientSettings, cached_vault: KeyVault, body: str) -> None:
    client = TokenExchangeClient(client_settings, cached_vault, transport=FakeTransport(200, body))

    with pytest.raises(RemoteError, match="malformed") as excinfo:
        client.exchange_client_assertion()
    assert excinfo.value.status_code == 200


def test_expires_in_accepts_numeric_string(client_settings: ClientSettings, cached_vault: KeyVault) -> None:
    received_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
    body = json.dumps({"access_token": "abc", "expires_in": "120", "token_type": "Bearer"})
    client = TokenExchangeClient(
        client_settings, cached_vault, transport=FakeTransport(200, body), clock=lambda: received_at
    )

    assert client.exchange_client_assertion().expires_at == received_at + timedelta(seconds=120)


def test_delete_cached_certificate(
    client_settings: ClientSettings, cached_vault: KeyVault, backend: FakeBackend
) -> None:
    client = TokenExchangeClient(client_settings, cached_vault, transport=FakeTransport(200, SUCCESS_BODY))
    client.exchange_client_assertion()
    assert backend.get_calls == [CERTIFICATE_NAME]

    assert client.delete_cached_certificate() is True
    client.exchange_client_assertion()
    assert backend.get_calls == [CERTIFICATE_NAME, CERTIFICATE_NAME]


@pytest.mark.anyio
async def test_async_exchange_over_httpx(client_settings: ClientSettings, cached_vault: KeyVault) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=SUCCESS_BODY, headers={"content-type": "application/json"})

    transport = HttpxTransport(transport=httpx.MockTransport(handler))
    client = TokenExchangeClient(client_settings, cached_vault, async_transport=transport)

    token = await client.exchange_client_assertion_async()

    assert token.access_token == "abc123"
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://login.example.test/connect/token"
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    form = parse_qs(request.content.decode("utf-8"))
    assert form["grant_type"] == ["client_credentials"]
    assert form["client_assertion_type"] == [DEFAULT_CLIENT_ASSERTION_TYPE]


@pytest.mark.anyio
async def test_async_error_status(client_settings: ClientSettings, cached_vault: KeyVault) -> None:
    transport = HttpxTransport(
        transport=httpx.MockTransport(lambda request: httpx.Response(400, text='{"error":"invalid_client"}'))
    )
    client = TokenExchangeClient(client_settings, cached_vault, async_transport=transport)

    with pytest.raises(RemoteError) as excinfo:
        await client.exchange_client_assertion_async()
    assert excinfo.value.status_code == 400
    assert excinfo.value.body == '{"error":"invalid_client"}'


@pytest.mark.anyio
async def test_async_transport_failure_is_wrapped(client_settings: ClientSettings, cached_vault: KeyVault) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = TokenExchangeClient(
        client_settings, cached_vault, async_transport=HttpxTransport(transport=httpx.MockTransport(handler))
    )

    with pytest.raises(RemoteError, match="refused"):
        await client.exchange_client_assertion_async()
