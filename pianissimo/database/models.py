"""
pianissimo.database.models — Persisted Document Model
======================================================

The whole persisted state is one JSON document::

    {
      "config":  {"costPerSpin": 50,
                  "rewards": [{"name": "...", "weight": 60, "isRare": false}]},
      "history": [{"userId": "...", "username": "...", "itemName": "...",
                   "cost": 50, "isRare": false,
                   "timestamp": "2026-01-01T00:00:00+00:00",
                   "balanceAfter": 50}]
    }

``Document.from_dict`` also reads the legacy shape written by the first
version of the bot (``cost`` / ``chance`` / ``user`` / ``item`` / ``date``)
so an old ``database.json`` upgrades on first load.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from pianissimo.constants import DEFAULT_COST_PER_SPIN, DEFAULT_REWARDS
from pianissimo.engine.rewards import RewardEntry

__all__ = ["Config", "Document", "HistoryRecord", "default_document"]


def _parse_timestamp(raw: str) -> datetime:
    # Legacy rows were written by JavaScript's toISOString() ("...Z")
    ts = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Config:
    """Spin cost plus the ordered prize table."""

    cost_per_spin: int
    rewards: list[RewardEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.cost_per_spin < 0:
            raise ValueError(f"Spin cost cannot be negative: {self.cost_per_spin}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "costPerSpin": self.cost_per_spin,
            "rewards": [
                {"name": r.name, "weight": r.weight, "isRare": r.is_rare}
                for r in self.rewards
            ],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Config:
        cost = raw["costPerSpin"] if "costPerSpin" in raw else raw["cost"]
        rewards = [
            RewardEntry(
                name=str(item["name"]),
                weight=int(item["weight"] if "weight" in item else item["chance"]),
                is_rare=bool(item.get("isRare", False)),
            )
            for item in raw.get("rewards", [])
        ]
        return cls(cost_per_spin=int(cost), rewards=rewards)


# ---------------------------------------------------------------------------
# HistoryRecord
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class HistoryRecord:
    """One completed spin.  Append-only."""

    user_id: str
    username: str
    item_name: str
    cost: int
    is_rare: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    balance_after: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "userId": self.user_id,
            "username": self.username,
            "itemName": self.item_name,
            "cost": self.cost,
            "isRare": self.is_rare,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.balance_after is not None:
            data["balanceAfter"] = self.balance_after
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> HistoryRecord:
        balance_after = raw.get("balanceAfter")
        return cls(
            user_id=str(raw["userId"]),
            username=str(raw["username"] if "username" in raw else raw["user"]),
            item_name=str(raw["itemName"] if "itemName" in raw else raw["item"]),
            cost=int(raw["cost"]),
            is_rare=bool(raw.get("isRare", False)),
            timestamp=_parse_timestamp(raw["timestamp"] if "timestamp" in raw else raw["date"]),
            balance_after=int(balance_after) if balance_after is not None else None,
        )


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Document:
    """The unit of durability: config + full history."""

    config: Config
    history: tuple[HistoryRecord, ...] = ()

    def with_config(self, config: Config) -> Document:
        return replace(self, config=config)

    def with_record(self, record: HistoryRecord) -> Document:
        return replace(self, history=(*self.history, record))

    def to_dict(self) -> dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "history": [record.to_dict() for record in self.history],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Document:
        if not isinstance(raw, dict):
            raise TypeError(f"Document root must be an object, got {type(raw).__name__}")
        return cls(
            config=Config.from_dict(raw["config"]),
            history=tuple(HistoryRecord.from_dict(r) for r in raw.get("history", [])),
        )


def default_document() -> Document:
    """Fresh document seeded with the built-in prize table."""
    return Document(
        config=Config(
            cost_per_spin=DEFAULT_COST_PER_SPIN,
            rewards=[
                RewardEntry(name=name, weight=weight, is_rare=rare)
                for name, weight, rare in DEFAULT_REWARDS
            ],
        ),
    )
