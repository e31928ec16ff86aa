"""
pianissimo.engine.rewards — Reward Table & Weighted Draw
=========================================================

Pure functions over an ordered list of :class:`RewardEntry`.
No Discord I/O, no file I/O inside the engine.

Draw algorithm::

    total = Σ weight
    r     ~ U[0, total)
    walk entries in order; first entry with r < weight wins, else r -= weight

Table order only decides where each entry's interval sits, never its
probability.  Tables are treated as immutable: ``upsert`` and ``remove``
return a new list.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from pianissimo.engine.errors import EmptyTableError

logger = logging.getLogger(__name__)

__all__ = [
    "RewardEntry",
    "draw",
    "percentages",
    "remove",
    "total_weight",
    "upsert",
]

_default_rng = random.SystemRandom()


# ---------------------------------------------------------------------------
# RewardEntry
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RewardEntry:
    """One prize in the table.  ``name`` is the unique key."""

    name: str
    weight: int
    is_rare: bool = False

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Reward name must not be blank")
        if isinstance(self.weight, bool) or not isinstance(self.weight, int):
            raise ValueError(f"Reward weight must be an integer, got {self.weight!r}")
        if self.weight <= 0:
            raise ValueError(f"Reward weight must be positive, got {self.weight}")


def total_weight(table: list[RewardEntry]) -> int:
    return sum(entry.weight for entry in table)


# ---------------------------------------------------------------------------
# Draw
# ---------------------------------------------------------------------------
def draw(table: list[RewardEntry], rng: random.Random | None = None) -> RewardEntry:
    """Pick one entry with probability ``weight / total``.

    Raises
    ------
    EmptyTableError
        If *table* is empty or its total weight is zero.
    """
    total = total_weight(table)
    if not table or total <= 0:
        raise EmptyTableError()

    r = (rng or _default_rng).random() * total
    for entry in table:
        if r < entry.weight:
            return entry
        r -= entry.weight

    # Float edge at the top of the range: fall back to the first entry.
    logger.warning("Draw walked off the table (r=%r, total=%d); using first entry", r, total)
    return table[0]


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def upsert(
    table: list[RewardEntry], entry: RewardEntry
) -> tuple[list[RewardEntry], bool]:
    """Replace the same-named entry in place, or append.

    Returns ``(new_table, created)``.
    """
    updated = list(table)
    for idx, existing in enumerate(updated):
        if existing.name == entry.name:
            updated[idx] = entry
            return updated, False
    updated.append(entry)
    return updated, True


def remove(table: list[RewardEntry], name: str) -> tuple[list[RewardEntry], bool]:
    """Drop the entry called *name*.  Returns ``(new_table, removed)``."""
    updated = [entry for entry in table if entry.name != name]
    return updated, len(updated) < len(table)


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------
def percentages(table: list[RewardEntry]) -> list[tuple[RewardEntry, float]]:
    """Pair every entry with its win chance in percent (one decimal)."""
    total = total_weight(table)
    if total <= 0:
        return [(entry, 0.0) for entry in table]
    return [(entry, round(entry.weight / total * 100, 1)) for entry in table]
