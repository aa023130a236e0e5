"""
Signed session tokens.

A short-lived access token authorises API calls (bearer header or cookie); a
long-lived refresh token, kept in an http-only cookie, mints new access tokens.
Both carry the user's id so every request resolves to exactly one owner of
tables and documents.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum

import jwt
from pydantic import BaseModel

from .config import settings
from .models import User

ACCESS_COOKIE_NAME = "access_token"
REFRESH_COOKIE_NAME = "refresh_token"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"

    @property
    def lifetime(self) -> timedelta:
        if self is TokenKind.REFRESH:
            return timedelta(days=settings.refresh_token_ttl_days)
        return timedelta(minutes=settings.access_token_ttl_minutes)


class TokenSubject(BaseModel):
    user_id: int
    email: str
    name: str | None = None
    role: str | None = None

    @classmethod
    def for_user(cls, user: User) -> "TokenSubject":
        return cls(user_id=user.id, email=user.email, name=user.name, role=user.role)


class LoginRequest(BaseModel):
    email: str
    password: str


def issue_token(subject: TokenSubject, kind: TokenKind) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject.email,
        "uid": subject.user_id,
        "name": subject.name,
        "role": subject.role,
        "type": kind.value,
        "iat": now,
        "exp": now + kind.lifetime,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, kind: TokenKind) -> TokenSubject | None:
    """Verified subject of a token, or ``None`` if it is expired, forged or of the wrong kind."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None

    email = payload.get("sub")
    user_id = payload.get("uid")
    if payload.get("type") != kind.value or not email or not isinstance(user_id, int):
        return None
    return TokenSubject(user_id=user_id, email=email, name=payload.get("name"), role=payload.get("role"))
