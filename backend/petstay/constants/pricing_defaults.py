"""Default pricing configuration values."""

from __future__ import annotations

from decimal import Decimal

# Evaluated top-down; the first tier whose threshold the stay reaches wins.
DURATION_DISCOUNT_TIERS: tuple[tuple[int, Decimal], ...] = (
    (30, Decimal("0.15")),
    (14, Decimal("0.10")),
    (7, Decimal("0.05")),
)
