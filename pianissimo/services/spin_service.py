"""
pianissimo.services.spin_service — The Spin Transaction
========================================================

One spin, strictly in order::

    resolve identity → resolve balance → validate funds → debit label
        → draw prize → append history → publish events → respond

Shared service callable by the API and the bot.  Two spins for the same
member never interleave: resolve → record runs under a per-user
:class:`KeyedLock`, so both requests cannot read the same pre-debit balance.

Failure policy:
* Expected outcomes (:class:`InsufficientFunds`, :class:`IdentityNotFoundError`,
  :class:`BalanceUpdateFailed`, :class:`EmptyTableError` before the debit)
  leave every piece of state untouched and propagate as-is.
* A rejected label write stops the spin before the draw.  No draw is ever
  granted without a confirmed debit.
* Anything unexpected is logged and re-raised as :class:`SpinFailed`.  An
  already-applied label debit is **not** rolled back — the label is a
  best-effort mirror, the history document is the record.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from pianissimo.constants import DEFAULT_AVATAR_URL, GLOBAL_CHANNEL
from pianissimo.database.engine import run_io
from pianissimo.database.models import HistoryRecord
from pianissimo.database.store import DocumentStore
from pianissimo.engine.errors import (
    BalanceUpdateFailed,
    EmptyTableError,
    GachaError,
    InsufficientFunds,
    PersistenceError,
    SpinFailed,
    Unauthenticated,
)
from pianissimo.engine.rewards import RewardEntry, draw
from pianissimo.services.announcement_service import (
    Notifier,
    NullNotifier,
    SpinSummary,
    dispatch,
)
from pianissimo.services.balance_service import BalanceRepository, ResolvedBalance
from pianissimo.services.broadcaster import EventBroadcaster, balance_event, jackpot_event

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Per-user critical sections
# ---------------------------------------------------------------------------
class KeyedLock:
    """One :class:`asyncio.Lock` per key, dropped once nobody holds or waits."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


# ---------------------------------------------------------------------------
# Inputs / outputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CallerIdentity:
    """Who is spinning, as resolved from the session token."""

    user_id: str
    username: str
    avatar_url: str = DEFAULT_AVATAR_URL


@dataclass(frozen=True, slots=True)
class SpinResult:
    item: str
    new_balance: int
    is_rare: bool

    def to_dict(self) -> dict:
        return {
            "success": True,
            "item": self.item,
            "newBalance": self.new_balance,
            "isRare": self.is_rare,
        }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class SpinService:
    """Runs spin transactions against one store / repository / broadcaster."""

    def __init__(
        self,
        store: DocumentStore,
        balances: BalanceRepository,
        broadcaster: EventBroadcaster,
        notifier: Notifier | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.balances = balances
        self.broadcaster = broadcaster
        self.notifier = notifier or NullNotifier()
        self.locks = KeyedLock()
        self.rng = rng

    async def current_balance(self, user_id: str) -> ResolvedBalance:
        return await self.balances.resolve(user_id)

    async def spin(self, caller: CallerIdentity | None) -> SpinResult:
        """Charge the caller one spin and draw a prize.

        Raises
        ------
        Unauthenticated, IdentityNotFoundError, InsufficientFunds,
        BalanceUpdateFailed, EmptyTableError, PersistenceError, SpinFailed
        """
        if caller is None or not caller.user_id or not caller.username:
            raise Unauthenticated("Login required")
        user_id = caller.user_id

        async with self.locks.hold(user_id):
            resolved = await self._guard(self.balances.resolve(user_id), "resolve", user_id)

            cost = self.store.config.cost_per_spin
            if resolved.balance < cost:
                logger.info(
                    "Spin refused for %s: needs %d P, has %d P",
                    user_id, cost, resolved.balance,
                )
                raise InsufficientFunds(required=cost, available=resolved.balance)
            if not self.store.config.rewards:
                raise EmptyTableError()

            new_balance = resolved.balance - cost
            update = await self._guard(
                self.balances.apply(user_id, resolved.label, new_balance), "debit", user_id,
            )
            if not update.applied:
                logger.warning("Spin aborted for %s: label write rejected (%s)", user_id, update.reason)
                raise BalanceUpdateFailed(update.reason or "rejected")

            # The table is read again here so admin edits made mid-spin apply.
            try:
                entry = draw(self.store.config.rewards, self.rng)
            except EmptyTableError:
                logger.error(
                    "Reward table emptied after %s was debited %d P", user_id, cost,
                )
                raise
            record = HistoryRecord(
                user_id=user_id,
                username=caller.username,
                item_name=entry.name,
                cost=cost,
                is_rare=entry.is_rare,
                balance_after=new_balance,
            )
            await self._guard(run_io(self.store.append_history, record), "record", user_id)

        logger.info(
            "[Spin] %s (%s) paid %d P → %s%s, balance %d P",
            caller.username, user_id, cost, entry.name,
            " [RARE]" if entry.is_rare else "", new_balance,
        )
        self._announce(caller, entry, new_balance, record)
        return SpinResult(item=entry.name, new_balance=new_balance, is_rare=entry.is_rare)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    async def _guard(self, awaitable, step: str, user_id: str):
        """Await *awaitable*, turning unexpected errors into SpinFailed."""
        try:
            return await awaitable
        except PersistenceError:
            logger.exception("Spin step '%s' could not be persisted for %s", step, user_id)
            raise
        except GachaError:
            raise
        except Exception as exc:
            logger.exception("Spin step '%s' failed for %s", step, user_id)
            raise SpinFailed(f"Spin failed during {step}") from exc

    def _announce(
        self,
        caller: CallerIdentity,
        entry: RewardEntry,
        new_balance: int,
        record: HistoryRecord,
    ) -> None:
        self.broadcaster.publish(caller.user_id, balance_event(new_balance))
        if entry.is_rare:
            self.broadcaster.publish(GLOBAL_CHANNEL, jackpot_event(caller.username, entry.name))
        dispatch(
            self.notifier,
            SpinSummary(
                user_id=caller.user_id,
                username=caller.username,
                item_name=entry.name,
                new_balance=new_balance,
                is_rare=entry.is_rare,
                avatar_url=caller.avatar_url,
                timestamp=record.timestamp,
            ),
        )
