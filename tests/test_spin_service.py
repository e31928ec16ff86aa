"""
tests/test_spin_service.py — The Spin Transaction
==================================================

Covers the ordered pipeline (resolve → validate → debit → draw → record →
publish), every refusal path, and per-user serialization.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FixedRng, run_async
from pianissimo.constants import GLOBAL_CHANNEL
from pianissimo.engine.errors import (
    BalanceUpdateFailed,
    EmptyTableError,
    IdentityNotFoundError,
    InsufficientFunds,
    PersistenceError,
    SpinFailed,
    Unauthenticated,
)
from pianissimo.services.announcement_service import Notifier
from pianissimo.services.balance_service import InMemoryBalanceRepository
from pianissimo.services.spin_service import CallerIdentity, KeyedLock, SpinService

ALICE = CallerIdentity(user_id="12345", username="Alice")
BOB = CallerIdentity(user_id="67890", username="Bob")


class SlowBalanceRepository(InMemoryBalanceRepository):
    """Yields to the loop between every step, like a real network call."""

    async def resolve(self, user_id):
        await asyncio.sleep(0)
        return await super().resolve(user_id)

    async def apply(self, user_id, current_label, new_balance):
        await asyncio.sleep(0)
        return await super().apply(user_id, current_label, new_balance)


# ===========================================================================
# Happy path
# ===========================================================================
class TestSuccessfulSpin:
    def test_debits_draws_and_records(self, spins, balances, store):
        result = run_async(spins.spin(ALICE))

        assert result.to_dict() == {
            "success": True,
            "item": "เกลือ (อดน้าาา)",
            "newBalance": 50,
            "isRare": False,
        }
        assert balances.labels["12345"] == "Alice P : 50"
        (record,) = store.document.history
        assert record.user_id == "12345"
        assert record.username == "Alice"
        assert record.cost == 50
        assert record.balance_after == 50

    def test_publishes_private_balance_only(self, spins, broadcaster):
        async def _inner():
            with broadcaster.subscribe("12345") as mine, \
                    broadcaster.subscribe(GLOBAL_CHANNEL) as everyone:
                await spins.spin(ALICE)
                assert mine.queue.get_nowait() == {"type": "pointUpdate", "balance": 50}
                assert everyone.queue.empty()

        run_async(_inner())

    def test_rare_prize_broadcasts_one_jackpot(self, store, balances, broadcaster):
        spins = SpinService(store, balances, broadcaster, rng=FixedRng(0.99))

        async def _inner():
            with broadcaster.subscribe(GLOBAL_CHANNEL) as everyone:
                result = await spins.spin(ALICE)
                assert result.is_rare is True
                assert everyone.queue.get_nowait() == {
                    "type": "jackpot", "username": "Alice", "item": "รางวัลใหญ่ SSR",
                }
                assert everyone.queue.empty()

        run_async(_inner())
        assert store.document.history[-1].is_rare is True

    def test_notifier_receives_summary(self, store, balances, broadcaster):
        notifier = AsyncMock(spec=Notifier)
        spins = SpinService(store, balances, broadcaster, notifier, rng=FixedRng(0.0))

        async def _inner():
            await spins.spin(ALICE)
            await asyncio.sleep(0)  # let the fire-and-forget task run

        run_async(_inner())
        summary = notifier.notify_spin.await_args.args[0]
        assert summary.username == "Alice"
        assert summary.new_balance == 50

    def test_notifier_failure_does_not_fail_spin(self, store, balances, broadcaster):
        notifier = AsyncMock(spec=Notifier)
        notifier.notify_spin.side_effect = RuntimeError("discord down")
        spins = SpinService(store, balances, broadcaster, notifier, rng=FixedRng(0.0))

        async def _inner():
            result = await spins.spin(ALICE)
            await asyncio.sleep(0)
            return result

        assert run_async(_inner()).new_balance == 50

    def test_draws_from_current_table(self, store, balances, broadcaster):
        spins = SpinService(store, balances, broadcaster, rng=FixedRng(0.0))
        store.mutate_config(lambda cfg: replace(cfg, rewards=cfg.rewards[-1:]))
        assert run_async(spins.spin(ALICE)).item == "รางวัลใหญ่ SSR"


# ===========================================================================
# Refusals — nothing changes
# ===========================================================================
class TestRefusals:
    def test_insufficient_funds(self, spins, balances, store):
        with pytest.raises(InsufficientFunds) as exc_info:
            run_async(spins.spin(BOB))
        assert (exc_info.value.required, exc_info.value.available) == (50, 30)
        assert balances.labels["67890"] == "Bob P : 30"
        assert store.document.history == ()

    def test_exact_balance_is_enough(self, spins, balances):
        balances.labels["67890"] = "Bob P : 50"
        assert run_async(spins.spin(BOB)).new_balance == 0
        assert balances.labels["67890"] == "Bob P : 0"

    def test_label_without_marker_counts_as_zero(self, spins, balances):
        balances.labels["67890"] = "Bob"
        with pytest.raises(InsufficientFunds):
            run_async(spins.spin(BOB))

    def test_rejected_label_write(self, spins, balances, store, broadcaster):
        balances.locked.add("12345")
        with broadcaster.subscribe("12345") as sub:
            with pytest.raises(BalanceUpdateFailed):
                run_async(spins.spin(ALICE))
            assert sub.queue.empty()
        assert balances.labels["12345"] == "Alice P : 100"
        assert store.document.history == ()

    def test_unknown_member(self, spins, store):
        with pytest.raises(IdentityNotFoundError):
            run_async(spins.spin(CallerIdentity(user_id="404", username="Ghost")))
        assert store.document.history == ()

    @pytest.mark.parametrize("caller", [
        None,
        CallerIdentity(user_id="", username="Alice"),
        CallerIdentity(user_id="12345", username=""),
    ])
    def test_unauthenticated(self, spins, caller):
        with pytest.raises(Unauthenticated):
            run_async(spins.spin(caller))

    def test_empty_table_refused_before_debit(self, spins, balances, store):
        store.mutate_config(lambda cfg: replace(cfg, rewards=[]))
        with pytest.raises(EmptyTableError):
            run_async(spins.spin(ALICE))
        assert balances.labels["12345"] == "Alice P : 100"


# ===========================================================================
# Unexpected failures
# ===========================================================================
class TestFailures:
    def test_repository_crash_becomes_spin_failed(self, spins, balances):
        with patch.object(balances, "resolve", side_effect=RuntimeError("boom")):
            with pytest.raises(SpinFailed):
                run_async(spins.spin(ALICE))
        assert len(spins.locks) == 0

    def test_history_write_failure_propagates(self, spins, store):
        with patch.object(store, "append_history", side_effect=PersistenceError("disk full")):
            with pytest.raises(PersistenceError):
                run_async(spins.spin(ALICE))


# ===========================================================================
# Concurrency
# ===========================================================================
class TestSerialization:
    def test_no_double_spend(self, store, broadcaster):
        balances = SlowBalanceRepository({"12345": "Alice P : 60"})
        spins = SpinService(store, balances, broadcaster, rng=FixedRng(0.0))

        async def _inner():
            return await asyncio.gather(
                spins.spin(ALICE), spins.spin(ALICE), return_exceptions=True,
            )

        results = run_async(_inner())
        refused = [r for r in results if isinstance(r, InsufficientFunds)]
        succeeded = [r for r in results if not isinstance(r, BaseException)]
        assert len(succeeded) == 1
        assert len(refused) == 1
        assert refused[0].available == 10
        assert balances.labels["12345"] == "Alice P : 10"
        assert len(store.document.history) == 1

    def test_different_users_run_independently(self, store, broadcaster):
        balances = SlowBalanceRepository({"12345": "Alice P : 100", "67890": "Bob P : 100"})
        spins = SpinService(store, balances, broadcaster, rng=FixedRng(0.0))

        async def _inner():
            return await asyncio.gather(spins.spin(ALICE), spins.spin(BOB))

        a, b = run_async(_inner())
        assert a.new_balance == b.new_balance == 50
        assert len(store.document.history) == 2

    def test_locks_are_released(self, spins):
        run_async(spins.spin(ALICE))
        with pytest.raises(InsufficientFunds):
            run_async(spins.spin(BOB))
        assert len(spins.locks) == 0


class TestKeyedLock:
    def test_same_key_is_exclusive(self):
        locks = KeyedLock()
        order: list[str] = []

        async def worker(tag: str):
            async with locks.hold("k"):
                order.append(f"{tag}-in")
                await asyncio.sleep(0)
                order.append(f"{tag}-out")

        async def _inner():
            await asyncio.gather(worker("a"), worker("b"))

        run_async(_inner())
        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert len(locks) == 0
