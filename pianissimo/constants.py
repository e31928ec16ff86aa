"""
pianissimo.constants — Shared Constants
========================================

Single source of truth for defaults, realtime channel keys, and
presentation constants.  Import from here instead of duplicating in cogs,
services, and routes.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
DEFAULT_DATABASE_PATH = "database.json"

# How many history rows /history and GET /api/history return by default
HISTORY_PAGE_SIZE = 10

# ---------------------------------------------------------------------------
# Default gameplay config (seeded into a fresh document)
# ---------------------------------------------------------------------------
DEFAULT_COST_PER_SPIN = 50

# (name, weight, is_rare)
DEFAULT_REWARDS: tuple[tuple[str, int, bool], ...] = (
    ("เกลือ (อดน้าาา)", 60, False),
    ("น้ำดื่ม", 25, False),
    ("โปร 3 แถม 1", 10, False),
    ("รางวัลใหญ่ SSR", 5, True),
)

# ---------------------------------------------------------------------------
# Realtime channels & event names
# ---------------------------------------------------------------------------
GLOBAL_CHANNEL = "*"  # Reserved key — never a Discord snowflake

EVENT_POINT_UPDATE = "pointUpdate"
EVENT_JACKPOT = "jackpot"

# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
EMBED_COLOR = 0xFF9EB5
JACKPOT_COLOR = 0xF1C40F
EMBED_FOOTER = "Pianissimo Gacha"
DEFAULT_AVATAR_URL = "https://cdn.discordapp.com/embed/avatars/0.png"

JACKPOT_EMOJI = "\U0001f48e"  # 💎
PRIZE_EMOJI = "\U0001f381"    # 🎁
