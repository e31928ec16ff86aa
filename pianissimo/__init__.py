"""
Pianissimo — A Points Gacha for Discord Communities
=====================================================
Members carry a points balance in their server nickname (``P : 120``),
spend it on weighted prize draws from a web page, and watch balances and
jackpots update live.  Admins tune the cost and the prize table from
Discord or the REST API.

Package layout::

    pianissimo/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Defaults, channel keys, presentation bits
    ├── engine/
    │   ├── errors.py      # GachaError hierarchy
    │   ├── rewards.py     # RewardEntry + weighted draw
    │   └── points.py      # Balance ⇄ nickname label codec
    ├── database/
    │   ├── models.py      # Document / Config / HistoryRecord
    │   ├── engine.py      # run_io async bridge
    │   └── store.py       # Whole-document JSON store
    ├── services/
    │   ├── balance_service.py      # BalanceRepository implementations
    │   ├── spin_service.py         # The spin transaction
    │   ├── admin_service.py        # Cost / prize table / point grants
    │   ├── broadcaster.py          # Realtime pub/sub
    │   ├── announcement_service.py # Spin log notifier
    │   └── embeds.py               # Discord embed builders
    ├── bot/
    │   ├── core.py        # Bot subclass, cog loader
    │   ├── __main__.py    # Single-process bot + API runner
    │   └── cogs/
    │       ├── gacha.py   # /random, /addpoint, /setreward, ...
    │       └── members.py # Nickname change relay
    └── api/
        ├── main.py        # FastAPI app factory
        ├── deps.py        # JWT → caller identity
        └── routes/        # Spin, query, admin, realtime endpoints
"""

__version__ = "0.1.0"
