"""
pianissimo.api.routes.realtime — Live balance & jackpot push
=============================================================

``WS /api/ws?token=<jwt>``

On connect the server sends the caller's current balance, then forwards
every event published on the caller's own channel (``pointUpdate``) and on
the global channel (``jackpot``).  Browsers cannot set headers on a
WebSocket handshake, hence the token in the query string.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status

from pianissimo.api.deps import caller_from_claims, decode_token
from pianissimo.constants import GLOBAL_CHANNEL
from pianissimo.engine.errors import GachaError
from pianissimo.services.broadcaster import Subscription, balance_event
from pianissimo.services.spin_service import SpinService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])


async def _forward(websocket: WebSocket, sub: Subscription) -> None:
    while True:
        event = await sub.get()
        await websocket.send_json(event)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws")
async def realtime(websocket: WebSocket, token: str | None = None):
    try:
        caller = caller_from_claims(decode_token(token))
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    spins: SpinService = websocket.app.state.spins
    await websocket.accept()

    # Subscribe before the initial read so no update can slip in between.
    with spins.broadcaster.subscribe(caller.user_id, GLOBAL_CHANNEL) as sub:
        try:
            resolved = await spins.current_balance(caller.user_id)
        except GachaError as exc:
            logger.info("No initial balance for %s: %s", caller.user_id, exc)
        else:
            await websocket.send_json(balance_event(resolved.balance))

        tasks = {
            asyncio.create_task(_forward(websocket, sub), name=f"ws-forward-{caller.user_id}"),
            asyncio.create_task(_wait_for_disconnect(websocket), name=f"ws-recv-{caller.user_id}"),
        }
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            # Also runs when the session itself is cancelled (server shutdown)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Realtime session for %s ended: %r", caller.user_id, exc)

    logger.debug("Realtime session closed for %s", caller.user_id)
