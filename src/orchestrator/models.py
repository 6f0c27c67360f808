"""Orchestrator data models — frozen Pydantic types for the cycle report."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.strategy.models import Mode, YieldSnapshot


class OutcomeStatus(str, Enum):
    """How a single market's reconciliation ended."""

    HELD = "held"
    ENTERED = "entered"
    SWITCHED = "switched"
    TRANSITION_FAILED = "transition_failed"
    INVALID_MODE = "invalid_mode"
    ERROR = "error"


_OK_STATUSES = frozenset({OutcomeStatus.HELD, OutcomeStatus.ENTERED, OutcomeStatus.SWITCHED})


class MarketOutcome(BaseModel):
    """Audit record for one market in one cycle."""

    model_config = ConfigDict(frozen=True)

    market: str
    status: OutcomeStatus
    held_before: Mode | None = None  # None → NO_POSITION
    optimal_mode: Mode | None = None  # None when the market failed before selection
    held_after: Mode | None = None
    snapshot: YieldSnapshot | None = None
    failed_step: str | None = None  # "enter" | "exit"
    error_type: str = ""
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in _OK_STATUSES


class CycleReport(BaseModel):
    """Everything one ``run_cycle`` did, in configured market order."""

    model_config = ConfigDict(frozen=True)

    cycle_id: str = Field(description="UUID4 hex for log correlation")
    started_at: datetime
    outcomes: tuple[MarketOutcome, ...] = ()
    elapsed_ms: float = 0.0
    explain: str = ""

    @property
    def failures(self) -> tuple[MarketOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.ok)

    def outcome(self, market: str) -> MarketOutcome:
        """Look up by market name.  Raises ``KeyError`` if missing."""
        for o in self.outcomes:
            if o.market == market:
                return o
        raise KeyError(f"No outcome for market {market!r}")
