"""
pianissimo.bot.cogs.gacha — Gacha Slash Commands
=================================================

Admin (configured admin role or Administrator permission):
- /random — set the cost per spin
- /addpoint — add points to a member's nickname balance
- /setreward — add or update a prize
- /deletereward — remove a prize

Everyone:
- /listrewards — prize table with win chances
- /history — the last spins
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from pianissimo.engine.errors import IdentityNotFoundError
from pianissimo.services import admin_service
from pianissimo.services.embeds import build_history_embed, build_rewards_embed

if TYPE_CHECKING:
    from pianissimo.bot.core import PianissimoBot

logger = logging.getLogger(__name__)


def is_admin():
    """Check for the configured admin role or the Administrator permission."""
    async def predicate(interaction: discord.Interaction) -> bool:
        bot: PianissimoBot = interaction.client  # type: ignore[assignment]
        user = interaction.user
        if not isinstance(user, discord.Member):
            return False
        if user.guild_permissions.administrator:
            return True
        return any(role.id == bot.cfg.admin_role_id for role in user.roles)
    return app_commands.check(predicate)


class Gacha(commands.Cog, name="Gacha"):
    """Prize machine configuration and queries."""

    def __init__(self, bot: PianissimoBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /random
    # -------------------------------------------------------------------
    @app_commands.command(name="random", description="Set Gacha Cost (Admin Only)")
    @app_commands.describe(cost="Points per spin")
    @is_admin()
    async def set_cost(
        self,
        interaction: discord.Interaction,
        cost: app_commands.Range[int, 1, None],
    ) -> None:
        await admin_service.set_cost(self.bot.store, cost)
        await interaction.response.send_message(f"✅ Spin cost set to **{cost} Points**")

    # -------------------------------------------------------------------
    # /addpoint
    # -------------------------------------------------------------------
    @app_commands.command(name="addpoint", description="Add Points (Admin Only)")
    @app_commands.describe(user="Target User", amount="Amount")
    @is_admin()
    async def add_point(
        self,
        interaction: discord.Interaction,
        user: discord.Member,
        amount: int,
    ) -> None:
        await interaction.response.defer()
        try:
            grant = await admin_service.grant_points(self.bot.spins, str(user.id), amount)
        except IdentityNotFoundError:
            await interaction.followup.send("❌ User not found.")
            return

        if grant.label_updated:
            await interaction.followup.send(
                f"✅ Added **{amount} P** to {user.mention}. (Total: {grant.new_balance} P)"
            )
        else:
            await interaction.followup.send(
                f"⚠️ Points recorded ({grant.new_balance} P) but the nickname "
                "**could not be changed** (higher role or server owner)."
            )

    # -------------------------------------------------------------------
    # /setreward
    # -------------------------------------------------------------------
    @app_commands.command(name="setreward", description="Add or Update Reward (Admin Only)")
    @app_commands.describe(
        name="Reward Name",
        chance="Chance Weight",
        rare="Announce as a jackpot when drawn",
    )
    @is_admin()
    async def set_reward(
        self,
        interaction: discord.Interaction,
        name: str,
        chance: app_commands.Range[int, 1, None],
        rare: bool = False,
    ) -> None:
        if not name.strip():
            await interaction.response.send_message("❌ Reward name is empty.", ephemeral=True)
            return
        created = await admin_service.upsert_reward(self.bot.store, name, chance, rare)
        if created:
            msg = f"✅ Added reward **{name.strip()}** (chance: {chance})"
        else:
            msg = f"✅ Updated **{name.strip()}** chance to {chance}"
        await interaction.response.send_message(msg)

    # -------------------------------------------------------------------
    # /deletereward
    # -------------------------------------------------------------------
    @app_commands.command(name="deletereward", description="Remove Reward (Admin Only)")
    @app_commands.describe(name="Reward Name")
    @is_admin()
    async def delete_reward(self, interaction: discord.Interaction, name: str) -> None:
        if await admin_service.delete_reward(self.bot.store, name):
            await interaction.response.send_message(f"🗑️ Removed **{name}**")
        else:
            await interaction.response.send_message(f"❌ No reward named **{name}**")

    @delete_reward.autocomplete("name")
    async def _reward_autocomplete(
        self, interaction: discord.Interaction, current: str,
    ) -> list[app_commands.Choice[str]]:
        choices = [
            app_commands.Choice(name=entry.name, value=entry.name)
            for entry in self.bot.store.config.rewards
            if current.lower() in entry.name.lower()
        ]
        return choices[:25]  # Discord caps at 25

    # -------------------------------------------------------------------
    # /listrewards
    # -------------------------------------------------------------------
    @app_commands.command(name="listrewards", description="Show rewards")
    async def list_rewards(self, interaction: discord.Interaction) -> None:
        listing = admin_service.list_rewards(self.bot.store)
        await interaction.response.send_message(embed=build_rewards_embed(listing))

    # -------------------------------------------------------------------
    # /history
    # -------------------------------------------------------------------
    @app_commands.command(name="history", description="Show spin history (Last 10)")
    async def history(self, interaction: discord.Interaction) -> None:
        records = admin_service.recent_history(self.bot.store, self.bot.cfg.history_limit)
        if not records:
            await interaction.response.send_message("No spins yet.")
            return
        await interaction.response.send_message(embed=build_history_embed(records))

    # -------------------------------------------------------------------
    # Error handler
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            msg = "⛔ Admins only."
        else:
            logger.error(
                "Command /%s failed",
                interaction.command.name if interaction.command else "?",
                exc_info=error,
            )
            msg = "❌ Something went wrong. Please try again."
        if interaction.response.is_done():
            await interaction.followup.send(msg, ephemeral=True)
        else:
            await interaction.response.send_message(msg, ephemeral=True)


async def setup(bot: PianissimoBot) -> None:
    await bot.add_cog(Gacha(bot))
