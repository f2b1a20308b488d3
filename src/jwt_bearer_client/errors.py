"""Exceptions raised by the JWT bearer client."""
from __future__ import annotations

from typing import Optional


class TokenClientError(RuntimeError):
    """Base class for every error raised by this package."""


class ValidationError(TokenClientError, ValueError):
    """Raised when a required argument is missing or empty."""


class ConfigurationError(TokenClientError):
    """Raised when settings are invalid or a named dependency cannot be resolved."""


class NotFoundError(TokenClientError, KeyError):
    """Raised on a cache miss."""

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return RuntimeError.__str__(self)


class CertificateError(TokenClientError):
    """Raised when certificate material cannot be decoded."""


class SigningError(TokenClientError):
    """Raised when an assertion cannot be signed or fails self-verification."""


class RemoteError(TokenClientError):
    """Raised when the trust store or the token endpoint call fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
