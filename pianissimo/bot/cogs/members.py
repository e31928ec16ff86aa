"""
pianissimo.bot.cogs.members — Nickname Change Relay
====================================================

Balances live in nicknames, so anyone who edits a nickname (the member, a
moderator, another bot) changes a balance.  This listener pushes the new
balance to the member's realtime channel so an open spin page stays in sync.
Edits the bot made itself are skipped: the spin or grant behind them has
already pushed the new balance.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from pianissimo.engine.points import parse_points
from pianissimo.services.broadcaster import balance_event

if TYPE_CHECKING:
    from pianissimo.bot.core import PianissimoBot

logger = logging.getLogger(__name__)


def _label(member: discord.Member) -> str:
    return member.nick or member.name


class Members(commands.Cog, name="Members"):
    """Relays nickname edits as balance updates."""

    def __init__(self, bot: PianissimoBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        if after.guild.id != self.bot.cfg.guild_id:
            return
        label = _label(after)
        if _label(before) == label:
            return
        if self.bot.spins.balances.is_own_write(str(after.id), label):
            logger.debug("Skipping echo of our own nickname edit for %s", after.id)
            return
        balance = parse_points(label)
        delivered = self.bot.broadcaster.publish(str(after.id), balance_event(balance))
        logger.debug(
            "Nickname change for %s → %d P (%d listeners)", after.id, balance, delivered,
        )


async def setup(bot: PianissimoBot) -> None:
    await bot.add_cog(Members(bot))
