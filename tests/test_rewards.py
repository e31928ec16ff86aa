"""
tests/test_rewards.py — Unit Tests for the Reward Table
========================================================

Tests the pure draw / table functions (no I/O).
"""

from __future__ import annotations

import random
from collections import Counter

import pytest

from conftest import FixedRng
from pianissimo.engine.errors import EmptyTableError
from pianissimo.engine.rewards import (
    RewardEntry,
    draw,
    percentages,
    remove,
    total_weight,
    upsert,
)


@pytest.fixture
def table() -> list[RewardEntry]:
    return [
        RewardEntry("Salt", 60),
        RewardEntry("Water", 25),
        RewardEntry("Promo", 10),
        RewardEntry("SSR", 5, is_rare=True),
    ]


# ---------------------------------------------------------------------------
# RewardEntry
# ---------------------------------------------------------------------------
class TestRewardEntry:
    @pytest.mark.parametrize("weight", [0, -3, 1.5, True])
    def test_rejects_bad_weight(self, weight):
        with pytest.raises(ValueError):
            RewardEntry("X", weight)

    @pytest.mark.parametrize("name", ["", "   "])
    def test_rejects_blank_name(self, name):
        with pytest.raises(ValueError):
            RewardEntry(name, 1)


# ---------------------------------------------------------------------------
# draw
# ---------------------------------------------------------------------------
class TestDraw:
    def test_empty_table_raises(self):
        with pytest.raises(EmptyTableError):
            draw([])

    def test_single_entry_always_wins(self):
        only = RewardEntry("Only", 3)
        assert all(draw([only]) is only for _ in range(50))

    @pytest.mark.parametrize("value, expected", [
        (0.0, "Salt"),
        (0.59, "Salt"),
        (0.61, "Water"),
        (0.849, "Water"),
        (0.86, "Promo"),
        (0.96, "SSR"),
        (0.9999, "SSR"),
    ])
    def test_interval_walk(self, table, value, expected):
        assert draw(table, FixedRng(value)).name == expected

    def test_walking_off_the_end_falls_back_to_first(self, table):
        assert draw(table, FixedRng(1.0)).name == "Salt"

    def test_distribution_matches_weights(self, table):
        rng = random.Random(1234)
        n = 20_000
        counts = Counter(draw(table, rng).name for _ in range(n))
        for entry in table:
            expected = entry.weight / total_weight(table)
            assert abs(counts[entry.name] / n - expected) < 0.02

    def test_order_does_not_change_probability(self, table):
        rng = random.Random(99)
        n = 20_000
        counts = Counter(draw(list(reversed(table)), rng).name for _ in range(n))
        assert abs(counts["SSR"] / n - 0.05) < 0.01


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
class TestUpsertRemove:
    def test_upsert_appends_new(self, table):
        updated, created = upsert(table, RewardEntry("Cake", 7))
        assert created is True
        assert [e.name for e in updated][-1] == "Cake"
        assert len(table) == 4  # input untouched

    def test_upsert_replaces_in_place(self, table):
        updated, created = upsert(table, RewardEntry("Water", 40, is_rare=True))
        assert created is False
        assert updated[1] == RewardEntry("Water", 40, is_rare=True)
        assert len(updated) == 4

    def test_remove_existing(self, table):
        updated, removed = remove(table, "Promo")
        assert removed is True
        assert "Promo" not in [e.name for e in updated]

    def test_remove_missing_is_noop(self, table):
        updated, removed = remove(table, "Nope")
        assert removed is False
        assert updated == table


class TestPercentages:
    def test_one_decimal(self):
        rows = percentages([RewardEntry("A", 1), RewardEntry("B", 2)])
        assert [pct for _, pct in rows] == [33.3, 66.7]

    def test_default_table(self, table):
        assert [pct for _, pct in percentages(table)] == [60.0, 25.0, 10.0, 5.0]

    def test_empty(self):
        assert percentages([]) == []
