from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from .auth import (
    REFRESH_COOKIE_NAME,
    LoginRequest,
    TokenKind,
    TokenSubject,
    decode_token,
    issue_token,
)
from .config import settings
from .context import SessionContext
from .db import Base, SessionLocal, engine, get_db
from .deps import get_current_user, get_session_context
from .errors import LedgerError
from .logging_config import configure_logging
from .models import User
from .routes import analytics, documents, tables
from .security import hash_password, verify_password

logger = logging.getLogger(__name__)


def _get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == email))


def _ensure_dev_user() -> None:
    if not settings.seed_dev_user:
        return

    with SessionLocal() as db:
        existing = _get_user_by_email(db, settings.seed_dev_email)
        if existing:
            return
        user = User(
            email=settings.seed_dev_email,
            name=settings.seed_dev_name,
            password_hash=hash_password(settings.seed_dev_password),
            is_admin=settings.seed_dev_is_admin,
            role="OWNER" if settings.seed_dev_is_admin else "CUSTOMER",
        )
        db.add(user)
        db.commit()
        logger.info("Seeded development user %s", user.email)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings)
    if settings.app_env != "production":
        Base.metadata.create_all(bind=engine)
    _ensure_dev_user()
    yield


app = FastAPI(title="Ledgerly API", version="0.3.0", lifespan=lifespan)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(tables.router)
app.include_router(documents.router)
app.include_router(analytics.router)


class UserOut(BaseModel):
    id: int
    email: str
    name: str | None = None
    is_admin: bool = False
    role: str | None = None
    is_premium: bool = False


class AuthResponse(BaseModel):
    authenticated: bool
    user: UserOut
    currency_code: str
    timezone: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


def _user_to_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        is_admin=user.is_admin,
        role=user.role,
        is_premium=bool(user.is_premium),
    )


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        max_age=settings.refresh_token_ttl_days * 86400,
        domain=settings.cookie_domain,
        path="/",
    )


def _clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        key=REFRESH_COOKIE_NAME,
        domain=settings.cookie_domain,
        path="/",
    )


def _issue_tokens(user: User, response: Response) -> TokenResponse:
    subject = TokenSubject.for_user(user)
    _set_refresh_cookie(response, issue_token(subject, TokenKind.REFRESH))
    return TokenResponse(access_token=issue_token(subject, TokenKind.ACCESS), user=_user_to_out(user))


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/auth/login", response_model=TokenResponse)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)) -> TokenResponse:
    user = _get_user_by_email(db, payload.email.strip().lower())
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    logger.info("User %s signed in", user.id)
    return _issue_tokens(user, response)


@app.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, response: Response, db: Session = Depends(get_db)) -> TokenResponse:
    token = request.cookies.get(REFRESH_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing refresh token")

    subject = decode_token(token, TokenKind.REFRESH)
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user = db.get(User, subject.user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return _issue_tokens(user, response)


@app.post("/auth/logout")
def logout(response: Response) -> dict[str, bool]:
    _clear_refresh_cookie(response)
    return {"ok": True}


@app.get("/me", response_model=AuthResponse)
def me(
    user: User = Depends(get_current_user),
    ctx: SessionContext = Depends(get_session_context),
) -> AuthResponse:
    return AuthResponse(
        authenticated=True,
        user=_user_to_out(user),
        currency_code=ctx.currency_code,
        timezone=str(ctx.timezone),
    )
