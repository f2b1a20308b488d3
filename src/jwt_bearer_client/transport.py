"""HTTP transports used to POST form-encoded token requests."""
from __future__ import annotations

import http.client
import logging
import ssl
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol
from urllib import error, parse, request

import certifi
import httpx

from .errors import RemoteError

LOGGER = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: str

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class FormTransport(Protocol):
    def post_form(self, url: str, fields: Mapping[str, str]) -> HttpResponse: ...


class AsyncFormTransport(Protocol):
    async def post_form(self, url: str, fields: Mapping[str, str]) -> HttpResponse: ...


def default_ssl_context() -> ssl.SSLContext:
    """Expose the default SSL context used across the project."""

    return ssl.create_default_context(cafile=certifi.where())


class UrllibTransport:
    """Blocking transport built on :mod:`urllib`."""

    def __init__(self, *, timeout: float = 10.0, ssl_context: Optional[ssl.SSLContext] = None):
        self._timeout = timeout
        self._ssl_context = ssl_context or default_ssl_context()

    def post_form(self, url: str, fields: Mapping[str, str]) -> HttpResponse:
        payload = parse.urlencode(fields).encode("utf-8")
        headers = {"Content-Type": FORM_CONTENT_TYPE, "Accept": "application/json"}
        req = request.Request(url, data=payload, headers=headers, method="POST")
        try:
            with request.urlopen(  # type: ignore[arg-type]
                req, timeout=self._timeout, context=self._ssl_context
            ) as resp:
                return HttpResponse(resp.status, resp.read().decode("utf-8", errors="replace"))
        except error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")
            return HttpResponse(exc.code, body)
        except (error.URLError, http.client.HTTPException, OSError) as exc:
            reason = exc.reason if isinstance(exc, error.URLError) else exc
            raise RemoteError(f"Request to {url} failed: {reason}") from exc


class HttpxTransport:
    """Asyncio transport built on :class:`httpx.AsyncClient`."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._transport = transport

    async def post_form(self, url: str, fields: Mapping[str, str]) -> HttpResponse:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, data=dict(fields), headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            raise RemoteError(f"Request to {url} failed: {exc}") from exc
        return HttpResponse(resp.status_code, resp.text)
