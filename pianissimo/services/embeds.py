"""
pianissimo.services.embeds — Discord embed builders
====================================================

All embed construction lives here so the notifier and cogs only need to
supply data — no layout concerns.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from pianissimo.constants import (
    EMBED_COLOR,
    EMBED_FOOTER,
    JACKPOT_COLOR,
    JACKPOT_EMOJI,
    PRIZE_EMOJI,
)

if TYPE_CHECKING:
    from pianissimo.database.models import HistoryRecord
    from pianissimo.services.admin_service import RewardListing
    from pianissimo.services.announcement_service import SpinSummary


def build_spin_embed(
    summary: SpinSummary, footer_icon_url: str | None = None
) -> discord.Embed:
    """Build the spin log card posted to the log channel."""
    embed = discord.Embed(
        title=(
            f"{JACKPOT_EMOJI} JACKPOT!" if summary.is_rare
            else f"{PRIZE_EMOJI} Prize received!"
        ),
        description=f"> **{summary.item_name}**",
        color=discord.Color(JACKPOT_COLOR if summary.is_rare else EMBED_COLOR),
        timestamp=summary.timestamp,
    )
    embed.set_author(name=f"{summary.username} spun the gacha!", icon_url=summary.avatar_url)
    embed.add_field(name="Reward", value=f"# {PRIZE_EMOJI} {summary.item_name}", inline=False)
    embed.add_field(name="Player", value=f"<@{summary.user_id}>", inline=True)
    embed.add_field(name="Balance", value=f"`{summary.new_balance} P`", inline=True)
    embed.set_thumbnail(url=summary.avatar_url)
    embed.set_footer(text=EMBED_FOOTER, icon_url=footer_icon_url)
    return embed


def build_rewards_embed(listing: RewardListing) -> discord.Embed:
    """Prize table with win chances, as shown by ``/listrewards``."""
    lines = [
        f"`{idx}.` **{row.name}**{f' {JACKPOT_EMOJI}' if row.is_rare else ''} ({row.percent:.1f}%)"
        for idx, row in enumerate(listing.rewards, start=1)
    ]
    embed = discord.Embed(
        title="\U0001f3b0 Rewards in the machine",
        description="\n".join(lines) or "*The machine is empty.*",
        color=discord.Color(EMBED_COLOR),
    )
    embed.add_field(name="Cost per spin", value=f"{listing.cost} P", inline=False)
    return embed


def build_history_embed(records: list[HistoryRecord]) -> discord.Embed:
    """Most recent spins, newest first, as shown by ``/history``."""
    lines = [
        f"• <t:{int(r.timestamp.timestamp())}:R> | **{r.username}** ➔ **{r.item_name}**"
        for r in records
    ]
    return discord.Embed(
        title=f"\U0001f4dc Latest spins (last {len(records)})",
        description="\n".join(lines),
        color=discord.Color(EMBED_COLOR),
    )
