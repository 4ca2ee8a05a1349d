"""Self-issued JWT access and refresh tokens."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from campaign_api.auth.types import TokenType
from campaign_api.config.models import AuthConfig

ALGORITHM = "HS256"


class InvalidTokenError(Exception):
    """The token is malformed, expired, badly signed or of the wrong type."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    username: str
    role: str
    token_type: TokenType
    expires_at: datetime


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class TokenService:
    """Issue and verify HS256 tokens for dashboard users."""

    def __init__(self, config: AuthConfig) -> None:
        self.config = config

    def create_access_token(self, user: dict[str, Any], now: datetime | None = None) -> IssuedToken:
        """Issue a short-lived access token for a user row."""
        lifetime = timedelta(minutes=self.config.access_token_minutes)
        return self._encode(user, TokenType.ACCESS, lifetime, now)

    def create_refresh_token(self, user: dict[str, Any], now: datetime | None = None) -> IssuedToken:
        """Issue a long-lived refresh token."""
        lifetime = timedelta(days=self.config.refresh_token_days)
        return self._encode(user, TokenType.REFRESH, lifetime, now)

    def verify(self, token: str, expected_type: TokenType) -> TokenClaims:
        """Decode ``token`` and check its type.

        Raises:
            InvalidTokenError: If decoding fails or the type does not match
        """
        try:
            payload = jwt.decode(
                token,
                self.config.jwt_secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "sub", "type"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidTokenError(str(exc)) from exc

        if payload.get("type") != expected_type.value:
            raise InvalidTokenError(f"Expected {expected_type.value} token")

        return TokenClaims(
            user_id=str(payload["sub"]),
            username=str(payload.get("username", "")),
            role=str(payload.get("role", "")),
            token_type=expected_type,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def _encode(
        self,
        user: dict[str, Any],
        token_type: TokenType,
        lifetime: timedelta,
        now: datetime | None,
    ) -> IssuedToken:
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + lifetime
        payload: dict[str, Any] = {
            "sub": str(user["id"]),
            "username": user["username"],
            "role": user["role"],
            "type": token_type.value,
            "iat": issued_at,
            "exp": expires_at,
            "jti": str(uuid.uuid4()),
        }
        token = jwt.encode(payload, self.config.jwt_secret, algorithm=ALGORITHM)
        return IssuedToken(token=token, expires_at=expires_at)
