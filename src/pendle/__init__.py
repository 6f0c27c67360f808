"""Pendle — API client, payload models, and unit helpers."""

from src.pendle.client import PendleClient
from src.pendle.models import ActiveMarket, ApyPoint, TradeIntent, TradeKind
from src.pendle.units import days_to_maturity, fixed_yield, from_base_units, to_base_units

__all__ = [
    "ActiveMarket",
    "ApyPoint",
    "PendleClient",
    "TradeIntent",
    "TradeKind",
    "days_to_maturity",
    "fixed_yield",
    "from_base_units",
    "to_base_units",
]
