"""Strategy — mode selection, position ledger, and transition engine."""

from src.strategy.ledger import MarketEntry, PositionLedger
from src.strategy.models import Mode, Position, YieldSnapshot
from src.strategy.protocols import PricingSource, TradeRouter
from src.strategy.selector import select_mode, yield_deltas
from src.strategy.snapshot import SnapshotBuilder
from src.strategy.transition import TransitionAction, TransitionEngine, instrument_for

__all__ = [
    "MarketEntry",
    "Mode",
    "Position",
    "PositionLedger",
    "PricingSource",
    "SnapshotBuilder",
    "TradeRouter",
    "TransitionAction",
    "TransitionEngine",
    "YieldSnapshot",
    "instrument_for",
    "select_mode",
    "yield_deltas",
]
