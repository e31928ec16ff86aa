"""
pianissimo.bot.core — Bot Instance & Cog Loader
================================================

**Why this file exists:**
:class:`PianissimoBot` is a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``) and the :class:`SpinService`
   (``bot.spins``) so every Cog reaches them via ``self.bot.*``.
2. Builds the Discord-backed collaborators of the spin service: the
   nickname balance repository and the log-channel notifier.
3. Loads every Cog in ``EXTENSIONS``.
4. Syncs the slash-command tree to the configured guild on startup.

The same :class:`SpinService` instance is handed to the FastAPI app, so
spins from the web page and admin commands from Discord share one set of
per-user locks and one document store.
"""

from __future__ import annotations

import logging

import discord
from discord.ext import commands

from pianissimo.config import GachaConfig
from pianissimo.database.store import DocumentStore
from pianissimo.services.announcement_service import ChannelNotifier, Notifier, NullNotifier
from pianissimo.services.balance_service import MemberNicknameRepository
from pianissimo.services.broadcaster import EventBroadcaster
from pianissimo.services.spin_service import SpinService

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "pianissimo.bot.cogs.gacha",
    "pianissimo.bot.cogs.members",
]


class PianissimoBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`GachaConfig` from ``config.yaml``.
    store:
        The loaded :class:`DocumentStore`.
    broadcaster:
        Realtime fan-out shared with the API.
    """

    def __init__(
        self, cfg: GachaConfig, store: DocumentStore, broadcaster: EventBroadcaster
    ) -> None:
        # GUILD_MEMBERS is privileged (enable in the Developer Portal):
        # needed to fetch members and to see nickname changes.
        intents = discord.Intents.default()
        intents.members = True
        intents.message_content = False
        intents.presences = False

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            description=f"{cfg.community_name} gacha",
        )

        self.cfg = cfg
        notifier: Notifier = (
            ChannelNotifier(self, cfg.log_channel_id) if cfg.log_channel_id else NullNotifier()
        )
        self.spins = SpinService(
            store,
            MemberNicknameRepository(self, cfg.guild_id),
            broadcaster,
            notifier,
        )

    @property
    def store(self) -> DocumentStore:
        return self.spins.store

    @property
    def broadcaster(self) -> EventBroadcaster:
        return self.spins.broadcaster

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load Cogs, then register slash commands on the primary guild.

        A Cog that fails to load is logged and skipped.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

        guild = discord.Object(id=self.cfg.guild_id)
        self.tree.copy_global_to(guild=guild)
        try:
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to guild %s", len(synced), self.cfg.guild_id)
        except discord.HTTPException:
            logger.exception("Slash command sync failed for guild %s", self.cfg.guild_id)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)
        if self.get_guild(self.cfg.guild_id) is None:
            logger.warning(
                "Bot is not a member of guild %d — spins will fail to resolve balances",
                self.cfg.guild_id,
            )
