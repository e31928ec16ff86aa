"""
pianissimo.services.announcement_service — Spin Log Notifier
=============================================================

After a spin is recorded, a short summary card goes to the configured log
channel.  The spin never waits on this: :func:`dispatch` schedules the send
as a background task and any failure is logged, not raised.

Embed construction lives in :mod:`pianissimo.services.embeds`.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from discord.abc import Messageable

from pianissimo.constants import DEFAULT_AVATAR_URL
from pianissimo.services.embeds import build_spin_embed

if TYPE_CHECKING:
    from discord import Client

logger = logging.getLogger(__name__)

# Strong references so pending sends aren't garbage-collected mid-flight
_pending: set[asyncio.Task] = set()


@dataclass(frozen=True, slots=True)
class SpinSummary:
    """What the notifier needs to know about a finished spin."""

    user_id: str
    username: str
    item_name: str
    new_balance: int
    is_rare: bool
    avatar_url: str = DEFAULT_AVATAR_URL
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class Notifier(abc.ABC):
    """Outbound sink for spin summaries."""

    @abc.abstractmethod
    async def notify_spin(self, summary: SpinSummary) -> None: ...


class NullNotifier(Notifier):
    """Drops everything.  Used when no log channel is configured."""

    async def notify_spin(self, summary: SpinSummary) -> None:
        return None


class ChannelNotifier(Notifier):
    """Posts a spin card to one Discord channel."""

    def __init__(self, client: Client, channel_id: int) -> None:
        self.client = client
        self.channel_id = channel_id

    async def _resolve_channel(self) -> Messageable | None:
        channel = self.client.get_channel(self.channel_id)
        if channel is None:
            channel = await self.client.fetch_channel(self.channel_id)
        return channel if isinstance(channel, Messageable) else None

    async def notify_spin(self, summary: SpinSummary) -> None:
        channel = await self._resolve_channel()
        if channel is None:
            logger.warning("Log channel %d is not messageable", self.channel_id)
            return
        bot_user = self.client.user
        embed = build_spin_embed(
            summary,
            footer_icon_url=bot_user.display_avatar.url if bot_user else None,
        )
        await channel.send(embed=embed)


async def _notify_safely(notifier: Notifier, summary: SpinSummary) -> None:
    try:
        await notifier.notify_spin(summary)
    except Exception:
        logger.exception("Failed to send spin log for %s", summary.user_id)


def dispatch(notifier: Notifier, summary: SpinSummary) -> asyncio.Task:
    """Fire-and-forget *summary* to *notifier* on the running loop."""
    task = asyncio.get_running_loop().create_task(
        _notify_safely(notifier, summary), name=f"spin-log-{summary.user_id}",
    )
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task
