"""
pianissimo.engine.errors — Gacha Error Hierarchy
=================================================

Every failure the spin pipeline can report is a :class:`GachaError`.
Expected, user-facing outcomes (not enough points, unknown member, rejected
nickname write) carry the data the caller needs to render them; the API
maps each class to a status code in :mod:`pianissimo.api.main`.
"""

from __future__ import annotations

__all__ = [
    "BalanceUpdateFailed",
    "EmptyTableError",
    "GachaError",
    "IdentityNotFoundError",
    "InsufficientFunds",
    "PersistenceError",
    "SpinFailed",
    "Unauthenticated",
]


class GachaError(Exception):
    """Base class for all gacha failures."""

    reason = "error"


class Unauthenticated(GachaError):
    """No resolved caller identity."""

    reason = "unauthenticated"


class IdentityNotFoundError(GachaError):
    """The user does not exist in the external identity store."""

    reason = "identity_not_found"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Member {user_id} was not found")
        self.user_id = user_id


class InsufficientFunds(GachaError):
    """Balance is below the spin cost.  Expected — not logged as an error."""

    reason = "insufficient_funds"

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"Not enough points (need {required} P, have {available} P)")
        self.required = required
        self.available = available


class BalanceUpdateFailed(GachaError):
    """The external label write was rejected (permissions, length, ...)."""

    reason = "balance_update_failed"

    def __init__(self, detail: str) -> None:
        super().__init__(f"Could not update the balance label: {detail}")
        self.detail = detail


class EmptyTableError(GachaError):
    """Draw attempted on a table with no entries or zero total weight."""

    reason = "no_rewards"

    def __init__(self) -> None:
        super().__init__("The reward table is empty")


class PersistenceError(GachaError):
    """The document store could not be written."""

    reason = "persistence_error"


class SpinFailed(GachaError):
    """Unexpected failure inside a spin.  Rendered as a generic server error."""

    reason = "server_error"
