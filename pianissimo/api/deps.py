"""
pianissimo.api.deps — FastAPI dependency injection
===================================================

Callers authenticate with a bearer JWT (HS256) carrying the Discord user id
in ``sub``, plus ``username``, optional ``avatar`` hash and ``is_admin``.
Issuing those tokens is the login flow's job; this module only verifies
them.
"""

from __future__ import annotations

import os
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from jwt.exceptions import InvalidTokenError

from pianissimo.constants import HISTORY_PAGE_SIZE
from pianissimo.database.store import DocumentStore
from pianissimo.services.spin_service import CallerIdentity, SpinService

_WEAK_SECRETS = frozenset({
    "pianissimo-dev-secret-change-me",
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


# ---------------------------------------------------------------------------
# Shared services (attached to app.state by create_app)
# ---------------------------------------------------------------------------
def get_spins(request: Request) -> SpinService:
    return request.app.state.spins


def get_store(spins: Annotated[SpinService, Depends(get_spins)]) -> DocumentStore:
    return spins.store


def get_history_limit(request: Request) -> int:
    return getattr(request.app.state, "history_limit", HISTORY_PAGE_SIZE)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------
def avatar_url(user_id: str, avatar_hash: str | None) -> str:
    """Construct a Discord CDN avatar URL."""
    if avatar_hash:
        ext = "gif" if avatar_hash.startswith("a_") else "png"
        return f"https://cdn.discordapp.com/avatars/{user_id}/{avatar_hash}.{ext}"
    try:
        index = (int(user_id) >> 22) % 6
    except ValueError:
        index = 0
    return f"https://cdn.discordapp.com/embed/avatars/{index}.png"


def decode_token(token: str | None) -> dict:
    """Verify *token* and return its claims.  Raises 401 if invalid."""
    if not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return payload


def caller_from_claims(payload: dict) -> CallerIdentity:
    user_id = str(payload["sub"])
    return CallerIdentity(
        user_id=user_id,
        username=payload.get("username") or "Unknown",
        avatar_url=avatar_url(user_id, payload.get("avatar")),
    )


def _bearer(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1]


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> CallerIdentity:
    """Validate JWT and return the caller.  Raises 401 if invalid."""
    return caller_from_claims(decode_token(_bearer(authorization)))


def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate JWT and return admin payload.  Raises 401/403."""
    payload = decode_token(_bearer(authorization))
    if not payload.get("is_admin"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return payload
