"""
pianissimo.api.routes.spin — Spin & read-only player endpoints
===============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from pianissimo.api.deps import get_current_user, get_history_limit, get_spins, get_store
from pianissimo.database.store import DocumentStore
from pianissimo.services import admin_service
from pianissimo.services.spin_service import CallerIdentity, SpinService

router = APIRouter(tags=["gacha"])


# ---------------------------------------------------------------------------
# POST /spin
# ---------------------------------------------------------------------------
@router.post("/spin")
async def spin(
    caller: CallerIdentity = Depends(get_current_user),
    spins: SpinService = Depends(get_spins),
):
    """Pay one spin and draw a prize.

    Expected refusals (not enough points, nickname not writable) come back
    as ``{"success": false, ...}`` via the handlers in ``api.main``.
    """
    result = await spins.spin(caller)
    return result.to_dict()


# ---------------------------------------------------------------------------
# GET /rewards
# ---------------------------------------------------------------------------
@router.get("/rewards")
def get_rewards(
    _caller: CallerIdentity = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    """Prize table with win chances and the current spin cost."""
    return admin_service.list_rewards(store).to_dict()


# ---------------------------------------------------------------------------
# GET /history
# ---------------------------------------------------------------------------
@router.get("/history")
def get_history(
    limit: int | None = Query(None, ge=1, le=100),
    _caller: CallerIdentity = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    default_limit: int = Depends(get_history_limit),
):
    """Most recent spins, newest first."""
    records = admin_service.recent_history(store, limit or default_limit)
    return {"history": [r.to_dict() for r in records]}


# ---------------------------------------------------------------------------
# GET /me
# ---------------------------------------------------------------------------
@router.get("/me")
async def me(
    caller: CallerIdentity = Depends(get_current_user),
    spins: SpinService = Depends(get_spins),
):
    """The caller's identity and live balance."""
    resolved = await spins.current_balance(caller.user_id)
    return {
        "id": caller.user_id,
        "username": caller.username,
        "avatarUrl": caller.avatar_url,
        "balance": resolved.balance,
    }
