"""
pianissimo.services.broadcaster — Realtime Pub/Sub
===================================================

Fans out balance and jackpot events to connected observers (WebSocket
sessions).  Channels are plain string keys: a user id for private balance
updates, :data:`~pianissimo.constants.GLOBAL_CHANNEL` for jackpots.

Delivery is fire-and-forget: ``publish`` is synchronous, never awaits and
never raises.  Each subscriber owns a bounded queue; when it is full the
event is dropped for that subscriber only.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any

from pianissimo.constants import EVENT_JACKPOT, EVENT_POINT_UPDATE

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 64


class Subscription:
    """One observer's inbox, registered under one or more channel keys."""

    def __init__(
        self, broadcaster: EventBroadcaster, keys: tuple[str, ...], maxsize: int
    ) -> None:
        self.keys = keys
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self._broadcaster = broadcaster

    async def get(self) -> dict[str, Any]:
        return await self.queue.get()

    def close(self) -> None:
        self._broadcaster.unsubscribe(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class EventBroadcaster:
    """Channel-keyed, non-blocking publish/subscribe."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[Subscription]] = defaultdict(set)

    def subscribe(self, *keys: str, maxsize: int = DEFAULT_QUEUE_SIZE) -> Subscription:
        if not keys:
            raise ValueError("subscribe() needs at least one channel key")
        sub = Subscription(self, tuple(keys), maxsize)
        for key in keys:
            self._subscribers[key].add(sub)
        logger.debug("Subscribed to %s", ", ".join(keys))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        for key in sub.keys:
            subs = self._subscribers.get(key)
            if subs is None:
                continue
            subs.discard(sub)
            if not subs:
                del self._subscribers[key]

    def subscriber_count(self, key: str) -> int:
        return len(self._subscribers.get(key, ()))

    def publish(self, key: str, event: dict[str, Any]) -> int:
        """Deliver *event* to every subscriber of *key*.

        Returns the number of subscribers that accepted it.
        """
        delivered = 0
        for sub in list(self._subscribers.get(key, ())):
            try:
                sub.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "Dropping %s event for a slow subscriber on channel %s",
                    event.get("type", "?"), key,
                )
                continue
            delivered += 1
        return delivered


# ---------------------------------------------------------------------------
# Event payloads
# ---------------------------------------------------------------------------
def balance_event(balance: int) -> dict[str, Any]:
    return {"type": EVENT_POINT_UPDATE, "balance": balance}


def jackpot_event(username: str, item: str) -> dict[str, Any]:
    return {"type": EVENT_JACKPOT, "username": username, "item": item}
