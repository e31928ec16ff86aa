"""
pianissimo.config — YAML Configuration Loader
==============================================

**Why this file exists:**
This module reads ``config.yaml`` for **infrastructure-only** settings
(Discord identity, admin role, storage path, etc.).  Gameplay tuning (spin
cost, the prize table) lives in the persisted document and is edited by
admins at runtime.

Usage::

    from pianissimo.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "Pianissimo"
    print(cfg.guild_id)          # 1468816181854081229
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from pianissimo.constants import DEFAULT_DATABASE_PATH, HISTORY_PAGE_SIZE


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure/identity only.
# Gameplay tuning lives in the persisted document.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GachaConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Discord
    guild_id: int  # Guild whose member nicknames carry the balances

    # Dashboard
    dashboard_port: int

    # Admin
    admin_role_id: int  # Discord role required for admin commands

    # Optional
    database_path: str = DEFAULT_DATABASE_PATH
    log_channel_id: int | None = None  # Where to post spin cards
    history_limit: int = HISTORY_PAGE_SIZE


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> GachaConfig:
    """Read *path* and return a :class:`GachaConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return GachaConfig(
        community_name=raw["community_name"],
        guild_id=int(raw["guild_id"]),
        dashboard_port=int(raw["dashboard_port"]),
        admin_role_id=int(raw["admin_role_id"]),
        database_path=str(raw.get("database_path") or DEFAULT_DATABASE_PATH),
        log_channel_id=(
            int(raw["log_channel_id"]) if raw.get("log_channel_id") else None
        ),
        history_limit=int(raw.get("history_limit") or HISTORY_PAGE_SIZE),
    )
