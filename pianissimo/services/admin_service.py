"""
pianissimo.services.admin_service — Config Mutations & Queries
===============================================================

Shared service module callable by both bot and API.

Mutations (admin only — callers enforce the role check):
- :func:`set_cost`, :func:`upsert_reward`, :func:`delete_reward`
- :func:`grant_points` — add (or remove) points on a member's label

Queries (any authenticated caller):
- :func:`list_rewards`, :func:`recent_history`

Each config mutation is one read-modify-write of the whole document,
serialized by the store and run off the event loop via ``run_io``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from pianissimo.constants import HISTORY_PAGE_SIZE
from pianissimo.database.engine import run_io
from pianissimo.database.models import Config, HistoryRecord
from pianissimo.engine import rewards as reward_table
from pianissimo.engine.rewards import RewardEntry
from pianissimo.services.broadcaster import balance_event

if TYPE_CHECKING:
    from pianissimo.database.store import DocumentStore
    from pianissimo.services.spin_service import SpinService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RewardRow:
    name: str
    weight: int
    is_rare: bool
    percent: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "weight": self.weight,
            "isRare": self.is_rare,
            "percent": self.percent,
        }


@dataclass(frozen=True, slots=True)
class RewardListing:
    cost: int
    rewards: list[RewardRow]

    def to_dict(self) -> dict:
        return {"cost": self.cost, "rewards": [r.to_dict() for r in self.rewards]}


@dataclass(frozen=True, slots=True)
class PointGrant:
    """Outcome of :func:`grant_points`.

    ``label_updated`` is False when the new balance was computed but the
    nickname could not be rewritten — reported, not rolled back.
    """

    user_id: str
    amount: int
    new_balance: int
    label_updated: bool
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "amount": self.amount,
            "newBalance": self.new_balance,
            "labelUpdated": self.label_updated,
            "reason": self.reason,
        }


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def list_rewards(store: DocumentStore) -> RewardListing:
    """Current prize table with win chances, plus the spin cost."""
    config = store.config
    return RewardListing(
        cost=config.cost_per_spin,
        rewards=[
            RewardRow(name=e.name, weight=e.weight, is_rare=e.is_rare, percent=pct)
            for e, pct in reward_table.percentages(config.rewards)
        ],
    )


def recent_history(
    store: DocumentStore, limit: int = HISTORY_PAGE_SIZE
) -> list[HistoryRecord]:
    """The *limit* most recent spins, newest first."""
    return store.recent_history(limit)


# ---------------------------------------------------------------------------
# Config mutations
# ---------------------------------------------------------------------------
async def set_cost(store: DocumentStore, cost: int) -> Config:
    if isinstance(cost, bool) or not isinstance(cost, int) or cost <= 0:
        raise ValueError(f"Spin cost must be a positive integer, got {cost!r}")
    config = await run_io(store.mutate_config, lambda cfg: replace(cfg, cost_per_spin=cost))
    logger.info("Spin cost set to %d P", cost)
    return config


async def upsert_reward(
    store: DocumentStore, name: str, weight: int, is_rare: bool = False
) -> bool:
    """Add a prize or update the one with the same name.

    Returns True when a new prize was added.
    """
    entry = RewardEntry(name=name.strip(), weight=weight, is_rare=is_rare)
    created = False

    def _mutate(cfg: Config) -> Config:
        nonlocal created
        table, created = reward_table.upsert(cfg.rewards, entry)
        return replace(cfg, rewards=table)

    await run_io(store.mutate_config, _mutate)
    logger.info(
        "%s reward %r (weight %d%s)",
        "Added" if created else "Updated", entry.name, entry.weight,
        ", rare" if entry.is_rare else "",
    )
    return created


async def delete_reward(store: DocumentStore, name: str) -> bool:
    """Remove the prize called *name*.  Returns False if there was none.

    Nothing is written when the name is unknown.
    """
    name = name.strip()
    if not any(entry.name == name for entry in store.config.rewards):
        return False

    removed = False

    def _mutate(cfg: Config) -> Config:
        nonlocal removed
        table, removed = reward_table.remove(cfg.rewards, name)
        return replace(cfg, rewards=table)

    config = await run_io(store.mutate_config, _mutate)
    if removed:
        logger.info("Removed reward %r", name)
        if not config.rewards:
            logger.warning("Reward table is now empty — spins will be refused")
    return removed


# ---------------------------------------------------------------------------
# Manual point grants
# ---------------------------------------------------------------------------
async def grant_points(spins: SpinService, user_id: str, amount: int) -> PointGrant:
    """Add *amount* points (negative to deduct, floored at zero).

    Runs under the same per-user lock as spins.
    """
    async with spins.locks.hold(user_id):
        resolved = await spins.balances.resolve(user_id)
        new_balance = max(resolved.balance + amount, 0)
        update = await spins.balances.apply(user_id, resolved.label, new_balance)

    if update.applied:
        logger.info("Granted %d P to %s (now %d P)", amount, user_id, new_balance)
        spins.broadcaster.publish(user_id, balance_event(new_balance))
    else:
        logger.warning(
            "Granted %d P to %s but label not updated: %s", amount, user_id, update.reason,
        )
    return PointGrant(
        user_id=user_id,
        amount=amount,
        new_balance=new_balance,
        label_updated=update.applied,
        reason=update.reason,
    )
