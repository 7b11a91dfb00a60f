from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

import jwt


@dataclass(slots=True, frozen=True)
class UserProfile:
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "UserProfile":
        known = {"id", "email", "name", "phone"}
        return cls(
            id=str(payload.get("id", "")),
            email=payload.get("email"),
            name=payload.get("name"),
            phone=payload.get("phone"),
            extra={key: value for key, value in payload.items() if key not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update({"id": self.id, "email": self.email, "name": self.name, "phone": self.phone})
        return data


@dataclass(slots=True, frozen=True)
class Session:
    access_token: str
    refresh_token: str
    user_id: str
    expires_approx: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.access_token or not self.refresh_token:
            raise ValueError("A session requires both an access token and a refresh token.")

    def __repr__(self) -> str:
        return f"Session(user_id={self.user_id!r}, expires_approx={self.expires_approx!r})"

    def with_access_token(self, access_token: str, refresh_token: Optional[str] = None) -> "Session":
        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
            expires_approx=token_expiry(access_token),
        )

    def is_expired(self, *, now: Optional[datetime] = None) -> bool:
        if self.expires_approx is None:
            return False
        reference = now or datetime.now(timezone.utc)
        return reference >= self.expires_approx


def token_expiry(token: str) -> Optional[datetime]:
    """Read the ``exp`` claim of a JWT access token without verifying it."""

    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)
