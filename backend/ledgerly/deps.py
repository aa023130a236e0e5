"""Request-scoped dependencies: authenticated user, session context and store."""
from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .auth import ACCESS_COOKIE_NAME, TokenKind, decode_token
from .context import SessionContext
from .db import get_db
from .models import Branding, User
from .store import LedgerStore


def get_access_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()

    return request.cookies.get(ACCESS_COOKIE_NAME)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = get_access_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing access token")

    subject = decode_token(token, TokenKind.ACCESS)
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")

    user = db.get(User, subject.user_id)
    if not user or user.email != subject.email or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_session_context(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> SessionContext:
    return SessionContext.for_user(user, db.get(Branding, user.id))


def get_store(ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)) -> LedgerStore:
    return LedgerStore(db, ctx.user_id)
