"""Snapshot refresh — turn prices and APY history into a YieldSnapshot."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.core.config import MarketConfig
from src.core.errors import DataUnavailable, PendleError
from src.pendle.models import ApyPoint
from src.pendle.units import days_to_maturity, fixed_yield
from src.strategy.models import YieldSnapshot
from src.strategy.protocols import PricingSource

logger = structlog.get_logger(__name__)


class SnapshotBuilder:
    """Builds one market's YieldSnapshot from the pricing source.

    Missing data never fails a refresh: a failed or empty price lookup
    yields price 0 (and therefore fixed yield 0), a failed or empty APY
    history yields 0 for both implied and underlying yield.
    """

    def __init__(self, source: PricingSource) -> None:
        self._source = source

    def refresh(self, market: MarketConfig, now: datetime | None = None) -> YieldSnapshot:
        now = now or datetime.now(timezone.utc)
        mlog = logger.bind(market=market.name)

        prices = self._fetch_prices(market, mlog)
        latest = self._fetch_latest_apy(market, mlog)

        days = days_to_maturity(market.maturity_ts, now)
        pt_price = prices.get(market.pt_address.lower(), 0.0)

        snapshot = YieldSnapshot(
            fixed_yield=fixed_yield(pt_price, days),
            floating_implied_yield=latest.implied_apy if latest else 0.0,
            underlying_yield=latest.underlying_apy if latest else 0.0,
            days_to_maturity=days,
            expired=days <= 0,
            pt_price=pt_price,
            yt_price=prices.get(market.yt_address.lower(), 0.0),
            lp_price=prices.get(market.market_address.lower(), 0.0),
            as_of=now,
        )
        mlog.info(
            "snapshot_refreshed",
            pt_price=snapshot.pt_price,
            yt_price=snapshot.yt_price,
            lp_price=snapshot.lp_price,
            fixed_yield=round(snapshot.fixed_yield, 6),
            implied_yield=round(snapshot.floating_implied_yield, 6),
            underlying_yield=round(snapshot.underlying_yield, 6),
            days_to_maturity=round(days, 2),
            expired=snapshot.expired,
        )
        return snapshot

    def _fetch_prices(self, market: MarketConfig, mlog) -> dict[str, float]:
        addresses = [market.pt_address, market.yt_address, market.market_address]
        if market.underlying_address:
            addresses.append(market.underlying_address)
        try:
            prices = self._source.get_token_prices(addresses)
        except (PendleError, DataUnavailable) as exc:
            mlog.warning("data_unavailable", signal="prices", error=str(exc))
            return {}
        return {addr.lower(): price for addr, price in prices.items()}

    def _fetch_latest_apy(self, market: MarketConfig, mlog) -> ApyPoint | None:
        try:
            history = self._source.get_apy_history(market.market_address)
        except (PendleError, DataUnavailable) as exc:
            mlog.warning("data_unavailable", signal="apy_history", error=str(exc))
            return None
        if not history:
            mlog.warning("data_unavailable", signal="apy_history", error="empty history")
            return None
        return history[0]
