"""Unit and yield arithmetic shared by the client and the strategy."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_DOWN, Decimal

SECONDS_PER_DAY = 86_400
DAYS_PER_YEAR = 365


def days_to_maturity(maturity_ts: int, now: datetime | None = None) -> float:
    """Fractional days until ``maturity_ts``, floored at 0."""
    now = now or datetime.now(timezone.utc)
    seconds = max(0.0, maturity_ts - now.timestamp())
    return seconds / SECONDS_PER_DAY


def fixed_yield(pt_price: float, days: float) -> float:
    """Annualised yield implied by buying PT at ``pt_price`` and redeeming at 1.

    Zero once matured or when PT trades at or above par (and for a
    non-positive price, which means the quote is missing).
    """
    if days <= 0 or pt_price >= 1 or pt_price <= 0:
        return 0.0
    return ((1 - pt_price) / pt_price) * (DAYS_PER_YEAR / days)


def to_base_units(amount: float | str | Decimal, decimals: int) -> int:
    """Human amount → integer base units, truncating extra precision."""
    scaled = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_base_units(value: int, decimals: int) -> float:
    return float(Decimal(value) / (Decimal(10) ** decimals))
