"""
leoconnect.api.deps — FastAPI dependency injection
===================================================
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from leoconnect.config import LeoConnectConfig, load_config
from leoconnect.database.engine import create_db_engine, run_db
from leoconnect.services.fanout_queue import FanoutJob, FanoutQueue
from leoconnect.services.media_relay import MediaRelay
from leoconnect.services.notification_service import fan_out_new_post
from leoconnect.services.pagination import clamp_window
from leoconnect.services.profile_service import get_or_create_user
from leoconnect.services.push_dispatcher import PushDispatcher

logger = logging.getLogger(__name__)

_WEAK_SECRETS = frozenset({
    "leoconnect-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> LeoConnectConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_media_relay() -> MediaRelay:
    return MediaRelay.from_env()


@lru_cache(maxsize=1)
def get_push_dispatcher() -> PushDispatcher:
    return PushDispatcher.from_env()


def get_session(engine: Annotated[Engine, Depends(get_engine)]):
    with Session(engine) as session:
        yield session


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Principal:
    """Verified caller identity taken from the bearer token."""
    subject_id: str
    email: str = ""
    name: str = ""
    picture: str = ""
    is_admin: bool = False

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Someone"


def _decode(authorization: str | None) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return payload


def get_principal(authorization: Annotated[str | None, Header()] = None) -> Principal:
    """Validate the bearer JWT and return the caller. Raises 401 if invalid."""
    payload = _decode(authorization)
    return Principal(
        subject_id=str(payload["sub"]),
        email=payload.get("email") or "",
        name=payload.get("name") or "",
        picture=payload.get("picture") or "",
        is_admin=bool(payload.get("is_admin")),
    )


def get_current_user(
    principal: Annotated[Principal, Depends(get_principal)],
    session: Session = Depends(get_session),
) -> Principal:
    """Authenticated caller with a guaranteed ``users`` row."""
    get_or_create_user(
        session, principal.subject_id,
        email=principal.email, name=principal.name, picture=principal.picture,
        is_admin=principal.is_admin,
    )
    return principal


def get_current_admin(principal: Annotated[Principal, Depends(get_principal)]) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return principal


CurrentUser = Annotated[Principal, Depends(get_current_user)]


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------
def page_window(
    limit: int | None = None,
    offset: int | None = None,
    cfg: LeoConnectConfig = Depends(get_config),
) -> tuple[int, int]:
    return clamp_window(limit, offset, cfg.page_limit)


def feed_window(
    limit: int | None = None,
    offset: int | None = None,
    cfg: LeoConnectConfig = Depends(get_config),
) -> tuple[int, int]:
    return clamp_window(limit, offset, cfg.feed_limit)


# ---------------------------------------------------------------------------
# Fan-out queue
# ---------------------------------------------------------------------------
def build_fanout_queue(
    engine: Engine, push: PushDispatcher | None, cfg: LeoConnectConfig
) -> FanoutQueue:
    """Queue whose jobs run :func:`fan_out_new_post` on a worker thread."""

    async def _handle(job: FanoutJob) -> list[tuple[str, str]]:
        return await run_db(fan_out_new_post, engine, push, job)

    return FanoutQueue(
        _handle,
        maxsize=cfg.fanout_queue_size,
        failure_capacity=cfg.fanout_failure_capacity,
    )


def get_fanout(request: Request) -> FanoutQueue | None:
    """The app's fan-out queue, or ``None`` before startup has created it."""
    return getattr(request.app.state, "fanout", None)
