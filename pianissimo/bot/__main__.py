"""
pianissimo.bot.__main__ — Entry point for ``python -m pianissimo.bot``
=======================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Load (or seed) the document store.
4. Create the PianissimoBot — it builds the shared SpinService.
5. Build the FastAPI app around that same SpinService.
6. Run the Discord client and uvicorn on one asyncio loop until either
   stops.

Run with::

    uv run python -m pianissimo.bot
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

from pianissimo.config import load_config
from pianissimo.database.store import DocumentStore
from pianissimo.services.broadcaster import EventBroadcaster

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("pianissimo")


async def _serve(bot, server: uvicorn.Server, token: str) -> None:
    """Run bot and API side by side; stop both when one exits."""
    async with bot:
        tasks = {
            asyncio.create_task(bot.start(token), name="discord-bot"),
            asyncio.create_task(server.serve(), name="api-server"),
        }
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

        server.should_exit = True
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            task.result()  # re-raise a crash from either side


def main() -> None:
    """Bootstrap and run the bot + API."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded — Community: %s", cfg.community_name)

    # 3. Document store.
    store = DocumentStore(cfg.database_path)
    store.load()

    # 4. Bot (imports the API lazily: deps validate JWT_SECRET at import).
    from pianissimo.api.main import create_app
    from pianissimo.bot.core import PianissimoBot

    bot = PianissimoBot(cfg=cfg, store=store, broadcaster=EventBroadcaster())

    # 5. API on the same loop.
    app = create_app(bot.spins, history_limit=cfg.history_limit)
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=cfg.dashboard_port,
        log_config=None,
    ))

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Pianissimo bot + API on port %d…", cfg.dashboard_port)
    try:
        asyncio.run(_serve(bot, server, token))
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
