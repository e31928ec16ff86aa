"""
pianissimo.engine.points — Balance ⇄ Nickname Label Codec
===========================================================

Balances are stored inside the member's display name as a marker like
``P : 120`` or ``p：7``.  The marker letter is case-insensitive, the colon
may be half-width ``:`` or full-width ``：``, and whitespace around it is
optional.  Digits are ASCII ``0-9`` only; Thai or full-width digits after
a marker do not count, so such a label reads as 0.  Only the first marker
counts.
"""

from __future__ import annotations

import re

__all__ = ["LABEL_PATTERN", "generate_label", "parse_points"]

LABEL_PATTERN = re.compile(r"([Pp]\s*[:：]\s*)([0-9]+)")


def parse_points(label: str | None) -> int:
    """Balance encoded in *label*; ``0`` when there is no marker."""
    if not label:
        return 0
    match = LABEL_PATTERN.search(label)
    return int(match.group(2)) if match else 0


def generate_label(label: str | None, points: int) -> str:
    """Rewrite the first marker's digits, or append `` P : <points>``."""
    if points < 0:
        raise ValueError(f"Balance cannot be negative: {points}")
    label = label or ""
    if LABEL_PATTERN.search(label):
        return LABEL_PATTERN.sub(lambda m: f"{m.group(1)}{points}", label, count=1)
    return f"{label} P : {points}"
