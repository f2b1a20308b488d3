"""Domain models used by the JWT bearer client."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class JwtClaimSet:
    """Claims carried by a client assertion (RFC 7523 section 3)."""

    iss: str
    sub: str
    aud: str
    jti: str
    iat: int
    exp: int

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AuthorizationToken:
    """Access token returned by the authorization server."""

    access_token: str
    token_type: str
    expires_at: datetime

    @property
    def authorization_header(self) -> Dict[str, str]:
        return {"Authorization": f"{self.token_type} {self.access_token}"}

    def seconds_remaining(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (self.expires_at - now).total_seconds()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.seconds_remaining(now) <= 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_at": self.expires_at.isoformat(),
        }
