"""
pianissimo.services.balance_service — Balance Repositories
===========================================================

A member's balance is not stored anywhere we own: it lives in their guild
nickname (see :mod:`pianissimo.engine.points`).  A
:class:`BalanceRepository` hides that encoding behind two calls:

* ``resolve(user_id)`` → current label + parsed balance
* ``apply(user_id, current_label, new_balance)`` → :class:`BalanceUpdate`

``apply`` never raises for an ordinary write refusal (missing permission,
nickname too long); it returns ``BalanceUpdate(applied=False, reason=...)``
so the caller can decide what a partial outcome means.  The label is a
best-effort mirror — other actors (the member, other bots) may rewrite it
between ``resolve`` and ``apply``; callers serialize per user.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import discord

from pianissimo.engine.errors import IdentityNotFoundError
from pianissimo.engine.points import generate_label, parse_points

if TYPE_CHECKING:
    from discord import Client

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedBalance:
    """Snapshot of a member's label and the balance parsed from it."""

    label: str
    balance: int


@dataclass(frozen=True, slots=True)
class BalanceUpdate:
    """Result of writing a new balance back to the label."""

    applied: bool
    label: str
    reason: str | None = None


class BalanceRepository(abc.ABC):
    """Maps a user id to an integer balance and back.

    Each successful ``apply`` that changes the label is remembered until the
    label shows up again through :meth:`is_own_write`, so a listener watching
    label changes can tell this repository's writes from anyone else's.
    """

    def __init__(self) -> None:
        self._own_writes: dict[str, str] = {}

    def _remember_write(self, user_id: str, old_label: str, new_label: str) -> None:
        if new_label != old_label:
            self._own_writes[user_id] = new_label

    def is_own_write(self, user_id: str, label: str) -> bool:
        """True (once) if *label* is the last label written for *user_id*."""
        if self._own_writes.get(user_id) != label:
            return False
        del self._own_writes[user_id]
        return True

    @abc.abstractmethod
    async def resolve(self, user_id: str) -> ResolvedBalance:
        """Raises :class:`IdentityNotFoundError` if the member is unknown."""

    @abc.abstractmethod
    async def apply(
        self, user_id: str, current_label: str, new_balance: int
    ) -> BalanceUpdate:
        """Write *new_balance* into the label derived from *current_label*."""


# ---------------------------------------------------------------------------
# Discord guild nicknames
# ---------------------------------------------------------------------------
class MemberNicknameRepository(BalanceRepository):
    """Balances stored in member nicknames of one guild.

    The label is ``member.nick`` or, when no nickname is set, the account
    name.  Writes go through ``member.edit(nick=...)``, which Discord refuses
    for the guild owner and for members whose top role is above the bot's.
    """

    def __init__(self, client: Client, guild_id: int) -> None:
        super().__init__()
        self.client = client
        self.guild_id = guild_id

    async def _get_guild(self) -> discord.Guild:
        guild = self.client.get_guild(self.guild_id)
        if guild is None:
            guild = await self.client.fetch_guild(self.guild_id)
        return guild

    async def _get_member(self, user_id: str) -> discord.Member:
        guild = await self._get_guild()
        try:
            snowflake = int(user_id)
        except ValueError:
            raise IdentityNotFoundError(user_id) from None
        member = guild.get_member(snowflake)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(snowflake)
        except discord.NotFound:
            raise IdentityNotFoundError(user_id) from None

    async def resolve(self, user_id: str) -> ResolvedBalance:
        member = await self._get_member(user_id)
        label = member.nick or member.name
        return ResolvedBalance(label=label, balance=parse_points(label))

    async def apply(
        self, user_id: str, current_label: str, new_balance: int
    ) -> BalanceUpdate:
        new_label = generate_label(current_label, new_balance)
        member = await self._get_member(user_id)
        try:
            await member.edit(nick=new_label, reason="Pianissimo: balance update")
        except discord.Forbidden:
            logger.warning(
                "Nickname write forbidden for %s (owner or higher role)", user_id,
            )
            return BalanceUpdate(
                applied=False,
                label=new_label,
                reason="The bot cannot rename this member (higher role or server owner)",
            )
        except discord.HTTPException as exc:
            logger.warning("Nickname write rejected for %s: %s", user_id, exc)
            return BalanceUpdate(applied=False, label=new_label, reason=str(exc))
        self._remember_write(user_id, current_label, new_label)
        return BalanceUpdate(applied=True, label=new_label)


# ---------------------------------------------------------------------------
# In-memory labels
# ---------------------------------------------------------------------------
class InMemoryBalanceRepository(BalanceRepository):
    """Labels kept in a dict.  Used by tests and by local runs without a bot.

    User ids listed in ``locked`` behave like members the bot cannot rename.
    """

    def __init__(self, labels: dict[str, str] | None = None) -> None:
        super().__init__()
        self.labels: dict[str, str] = dict(labels or {})
        self.locked: set[str] = set()

    async def resolve(self, user_id: str) -> ResolvedBalance:
        if user_id not in self.labels:
            raise IdentityNotFoundError(user_id)
        label = self.labels[user_id]
        return ResolvedBalance(label=label, balance=parse_points(label))

    async def apply(
        self, user_id: str, current_label: str, new_balance: int
    ) -> BalanceUpdate:
        new_label = generate_label(current_label, new_balance)
        if user_id not in self.labels:
            raise IdentityNotFoundError(user_id)
        if user_id in self.locked:
            return BalanceUpdate(applied=False, label=new_label, reason="Member is locked")
        self.labels[user_id] = new_label
        self._remember_write(user_id, current_label, new_label)
        return BalanceUpdate(applied=True, label=new_label)
