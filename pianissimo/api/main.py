"""
pianissimo.api.main — FastAPI application factory
==================================================

The API shares the bot's event loop and services, so the app is built by
:func:`create_app` rather than at import time.  ``python -m pianissimo.bot``
wires both together; tests pass in-memory services.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pianissimo.api.routes.admin import router as admin_router
from pianissimo.api.routes.realtime import router as realtime_router
from pianissimo.api.routes.spin import router as spin_router
from pianissimo.constants import HISTORY_PAGE_SIZE
from pianissimo.engine.errors import (
    BalanceUpdateFailed,
    EmptyTableError,
    GachaError,
    IdentityNotFoundError,
    InsufficientFunds,
    Unauthenticated,
)
from pianissimo.services.spin_service import SpinService

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


# ---------------------------------------------------------------------------
# GachaError → JSON
# ---------------------------------------------------------------------------
def _failure(status_code: int, exc: GachaError, msg: str | None = None, **extra) -> JSONResponse:
    body = {"success": False, "reason": exc.reason, "msg": msg or str(exc), **extra}
    return JSONResponse(body, status_code=status_code)


async def handle_gacha_error(request: Request, exc: GachaError) -> JSONResponse:
    if isinstance(exc, InsufficientFunds):
        return _failure(
            200, exc,
            f"Not enough points! (need {exc.required} P)",
            required=exc.required, available=exc.available,
        )
    if isinstance(exc, BalanceUpdateFailed):
        return _failure(
            200, exc,
            "The bot could not update your nickname (higher role or server owner)",
        )
    if isinstance(exc, IdentityNotFoundError):
        return _failure(404, exc, "Member not found in the server")
    if isinstance(exc, Unauthenticated):
        return _failure(401, exc, "Login required")
    if isinstance(exc, EmptyTableError):
        return _failure(503, exc, "The machine has no rewards configured")

    logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return _failure(500, exc, "Server Error")


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {"success": False, "reason": "server_error", "msg": "Server Error"},
        status_code=500,
    )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------
def create_app(spins: SpinService, *, history_limit: int = HISTORY_PAGE_SIZE) -> FastAPI:
    """Build the API around an existing :class:`SpinService`."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Pianissimo API started — document at %s", spins.store.path)
        yield
        logger.info("Pianissimo API shutting down")

    app = FastAPI(
        title="Pianissimo Gacha API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.spins = spins
    app.state.history_limit = history_limit

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(GachaError, handle_gacha_error)
    app.add_exception_handler(Exception, handle_unexpected)

    app.include_router(spin_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    app.include_router(realtime_router, prefix="/api")

    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    return app
