"""
tests/test_announcements.py — Spin Log Notifier & Embeds
=========================================================

Tests channel resolution, fire-and-forget dispatch, and the embed builders.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import discord

from conftest import run_async
from pianissimo.constants import EMBED_COLOR, JACKPOT_COLOR
from pianissimo.database.models import HistoryRecord
from pianissimo.services.admin_service import RewardListing, RewardRow
from pianissimo.services.announcement_service import (
    ChannelNotifier,
    Notifier,
    SpinSummary,
    dispatch,
)
from pianissimo.services.embeds import (
    build_history_embed,
    build_rewards_embed,
    build_spin_embed,
)


def _summary(**overrides) -> SpinSummary:
    fields = dict(
        user_id="12345",
        username="Alice",
        item_name="Water",
        new_balance=50,
        is_rare=False,
    )
    fields.update(overrides)
    return SpinSummary(**fields)


def _make_client(channel=None, *, fetched=None) -> MagicMock:
    client = MagicMock()
    client.get_channel.return_value = channel
    client.fetch_channel = AsyncMock(return_value=fetched)
    client.user = None
    return client


def _text_channel() -> MagicMock:
    channel = MagicMock(spec=discord.TextChannel)
    channel.send = AsyncMock()
    return channel


# ===========================================================================
# Embeds
# ===========================================================================
class TestSpinEmbed:
    def test_regular_prize(self):
        embed = build_spin_embed(_summary())
        assert "Prize" in embed.title
        assert embed.color.value == EMBED_COLOR
        fields = {f.name: f.value for f in embed.fields}
        assert "Water" in fields["Reward"]
        assert fields["Player"] == "<@12345>"
        assert fields["Balance"] == "`50 P`"

    def test_jackpot(self):
        embed = build_spin_embed(_summary(is_rare=True, item_name="SSR"))
        assert "JACKPOT" in embed.title
        assert embed.color.value == JACKPOT_COLOR

    def test_footer_icon(self):
        embed = build_spin_embed(_summary(), footer_icon_url="https://example.com/bot.png")
        assert embed.footer.icon_url == "https://example.com/bot.png"


class TestListEmbeds:
    def test_rewards(self):
        listing = RewardListing(cost=50, rewards=[
            RewardRow("Salt", 3, False, 75.0),
            RewardRow("SSR", 1, True, 25.0),
        ])
        embed = build_rewards_embed(listing)
        assert "**Salt** (75.0%)" in embed.description
        assert embed.description.splitlines()[1].startswith("`2.` **SSR**")
        assert embed.fields[0].value == "50 P"

    def test_empty_rewards(self):
        embed = build_rewards_embed(RewardListing(cost=50, rewards=[]))
        assert "empty" in embed.description

    def test_history(self):
        ts = datetime(2026, 1, 1, tzinfo=UTC)
        records = [HistoryRecord("1", "alice", "Salt", 50, timestamp=ts)]
        embed = build_history_embed(records)
        assert f"<t:{int(ts.timestamp())}:R>" in embed.description
        assert "**alice** ➔ **Salt**" in embed.description


# ===========================================================================
# ChannelNotifier
# ===========================================================================
class TestChannelNotifier:
    def test_sends_to_cached_channel(self):
        channel = _text_channel()
        notifier = ChannelNotifier(_make_client(channel), 42)

        run_async(notifier.notify_spin(_summary()))

        channel.send.assert_awaited_once()
        assert isinstance(channel.send.await_args.kwargs["embed"], discord.Embed)

    def test_fetches_uncached_channel(self):
        channel = _text_channel()
        client = _make_client(None, fetched=channel)

        run_async(ChannelNotifier(client, 42).notify_spin(_summary()))

        client.fetch_channel.assert_awaited_once_with(42)
        channel.send.assert_awaited_once()

    def test_skips_non_messageable_channel(self):
        category = MagicMock(spec=discord.CategoryChannel)
        run_async(ChannelNotifier(_make_client(category), 42).notify_spin(_summary()))
        # No exception, nothing to send to


class TestDispatch:
    def test_failure_is_logged_not_raised(self, caplog):
        notifier = AsyncMock(spec=Notifier)
        notifier.notify_spin.side_effect = RuntimeError("boom")

        async def _inner():
            task = dispatch(notifier, _summary())
            await task
            return task

        task = run_async(_inner())
        assert task.exception() is None
        assert "Failed to send spin log" in caplog.text

    def test_returns_without_waiting(self):
        gate = asyncio.Event()

        class _Blocking(Notifier):
            async def notify_spin(self, summary):
                await gate.wait()

        async def _inner():
            task = dispatch(_Blocking(), _summary())
            assert not task.done()
            gate.set()
            await task

        run_async(_inner())
