"""
Per-request session context.

Built exactly once at the request boundary from the authenticated user and
their branding, then passed explicitly to everything that needs the user id,
currency, premium flag or timezone. Signing out drops the refresh cookie, so
no context can be rebuilt afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timezone as dt_timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import settings
from .models import Branding, User


def resolve_timezone(name: str | None) -> tzinfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        return dt_timezone.utc


@dataclass(frozen=True)
class SessionContext:
    user_id: int
    email: str
    currency_code: str
    is_premium: bool
    is_owner: bool
    timezone: tzinfo

    @classmethod
    def for_user(cls, user: User, branding: Branding | None = None,
                 timezone_name: str | None = None) -> "SessionContext":
        currency = (branding.currency_code if branding and branding.currency_code else settings.default_currency)
        is_owner = (user.role or "").upper() == "OWNER"
        return cls(
            user_id=user.id,
            email=user.email,
            currency_code=currency.upper(),
            is_premium=bool(user.is_premium) or is_owner,
            is_owner=is_owner,
            timezone=resolve_timezone(timezone_name or settings.app_timezone),
        )
