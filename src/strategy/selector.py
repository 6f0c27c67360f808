"""Mode selection — map a yield snapshot to the mode worth holding."""

from __future__ import annotations

from src.strategy.models import Mode, YieldSnapshot


def yield_deltas(snapshot: YieldSnapshot) -> tuple[float, float]:
    """Return ``(fixed - underlying, underlying - implied)``."""
    return (
        snapshot.fixed_yield - snapshot.underlying_yield,
        snapshot.underlying_yield - snapshot.floating_implied_yield,
    )


def select_mode(snapshot: YieldSnapshot, threshold_delta: float) -> Mode:
    """Pick the optimal mode for one market.

    Rules, in order:

    1. Expired market → FIXED; PT redeems at par after maturity.
    2. Fixed yield beats the underlying by more than the threshold → FIXED
       (lock the rate, short yield).
    3. Underlying beats the market-implied yield by more than the
       threshold → FLOATING (long yield).
    4. Otherwise → LIQUIDITY (collect pool fees).

    ``threshold_delta`` is a decimal (0.5% → 0.005).  Comparisons are
    strict: a delta exactly at the threshold is not significant.
    """
    if snapshot.expired:
        return Mode.FIXED

    fixed_vs_underlying, underlying_vs_implied = yield_deltas(snapshot)
    if fixed_vs_underlying > threshold_delta:
        return Mode.FIXED
    if underlying_vs_implied > threshold_delta:
        return Mode.FLOATING
    return Mode.LIQUIDITY
