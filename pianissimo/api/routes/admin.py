"""
pianissimo.api.routes.admin — Admin config endpoints (JWT-protected)
=====================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from pianissimo.api.deps import get_current_admin, get_spins, get_store
from pianissimo.database.store import DocumentStore
from pianissimo.services import admin_service
from pianissimo.services.spin_service import SpinService

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CostUpdate(BaseModel):
    cost: int = Field(gt=0)


class RewardUpsert(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=100)
    weight: int = Field(gt=0)
    is_rare: bool = Field(False, alias="isRare")


class PointGrantRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    amount: int


# ---------------------------------------------------------------------------
# PUT /admin/cost
# ---------------------------------------------------------------------------
@router.put("/cost")
async def update_cost(
    body: CostUpdate,
    admin: dict = Depends(get_current_admin),
    store: DocumentStore = Depends(get_store),
):
    config = await admin_service.set_cost(store, body.cost)
    return {"cost": config.cost_per_spin}


# ---------------------------------------------------------------------------
# PUT /admin/rewards
# ---------------------------------------------------------------------------
@router.put("/rewards")
async def upsert_reward(
    body: RewardUpsert,
    admin: dict = Depends(get_current_admin),
    store: DocumentStore = Depends(get_store),
):
    if not body.name.strip():
        raise HTTPException(422, "Reward name must not be blank")
    created = await admin_service.upsert_reward(
        store, body.name, body.weight, body.is_rare,
    )
    return {"created": created, **admin_service.list_rewards(store).to_dict()}


# ---------------------------------------------------------------------------
# DELETE /admin/rewards/{name}
# ---------------------------------------------------------------------------
@router.delete("/rewards/{name}")
async def delete_reward(
    name: str,
    admin: dict = Depends(get_current_admin),
    store: DocumentStore = Depends(get_store),
):
    if not await admin_service.delete_reward(store, name):
        raise HTTPException(404, f"Reward '{name}' not found")
    return {"deleted": name, **admin_service.list_rewards(store).to_dict()}


# ---------------------------------------------------------------------------
# POST /admin/points
# ---------------------------------------------------------------------------
@router.post("/points")
async def grant_points(
    body: PointGrantRequest,
    admin: dict = Depends(get_current_admin),
    spins: SpinService = Depends(get_spins),
):
    grant = await admin_service.grant_points(spins, body.user_id, body.amount)
    return grant.to_dict()
