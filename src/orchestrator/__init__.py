"""Orchestrator — the sequential rebalance cycle over configured markets."""

from src.orchestrator.models import CycleReport, MarketOutcome, OutcomeStatus
from src.orchestrator.rebalance import RebalanceOrchestrator

__all__ = [
    "CycleReport",
    "MarketOutcome",
    "OutcomeStatus",
    "RebalanceOrchestrator",
]
