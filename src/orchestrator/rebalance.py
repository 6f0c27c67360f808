"""Rebalance cycle — refresh, select, reconcile, market by market."""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import structlog

from src.core.config import Settings
from src.core.errors import InvalidMode, RebalanceError, TransitionFailure
from src.execution.executor import TradeExecutor
from src.orchestrator.models import CycleReport, MarketOutcome, OutcomeStatus
from src.pendle.client import PendleClient
from src.strategy.ledger import MarketEntry, PositionLedger
from src.strategy.selector import select_mode, yield_deltas
from src.strategy.snapshot import SnapshotBuilder
from src.strategy.transition import TransitionAction, TransitionEngine

logger = structlog.get_logger(__name__)

_ACTION_STATUS = {
    TransitionAction.HOLD: OutcomeStatus.HELD,
    TransitionAction.ENTER: OutcomeStatus.ENTERED,
    TransitionAction.SWITCH: OutcomeStatus.SWITCHED,
}


class RebalanceOrchestrator:
    """Runs one sequential rebalance pass over the ledger's markets.

    Every external call blocks and completes before the next one starts.
    A fault in one market is logged and recorded in the
    :class:`CycleReport`; it never stops the remaining markets and never
    escapes :meth:`run_cycle`.  Scheduling repeated cycles is up to the
    caller, and two cycles must not overlap on the same orchestrator.
    """

    def __init__(
        self,
        snapshots: SnapshotBuilder,
        engine: TransitionEngine,
        ledger: PositionLedger,
        threshold_delta: float,
    ) -> None:
        self._snapshots = snapshots
        self._engine = engine
        self._ledger = ledger
        self._threshold_delta = threshold_delta
        self._running = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: PendleClient,
        executor: TradeExecutor,
        ledger: PositionLedger | None = None,
    ) -> "RebalanceOrchestrator":
        """Wire snapshot builder, engine and ledger from config."""
        ledger = ledger or PositionLedger(settings.markets)
        engine = TransitionEngine(
            client, executor, ledger,
            chain=settings.chain, execution=settings.execution,
        )
        return cls(
            SnapshotBuilder(client), engine, ledger,
            threshold_delta=settings.rebalance.threshold_delta,
        )

    @property
    def ledger(self) -> PositionLedger:
        return self._ledger

    def run_cycle(
        self,
        entries: Iterable[MarketEntry] | None = None,
        *,
        now: datetime | None = None,
    ) -> CycleReport:
        """Process ``entries`` (default: every ledger market) in order.

        For each market: refresh snapshot → mark position → select mode →
        reconcile.  Returns the per-market outcomes.
        """
        if self._running:
            raise RebalanceError("A rebalance cycle is already running")
        self._running = True
        try:
            return self._run(list(entries) if entries is not None else self._ledger.entries(), now)
        finally:
            self._running = False

    def _run(self, entries: list[MarketEntry], now: datetime | None) -> CycleReport:
        t0 = time.monotonic()
        started_at = now or datetime.now(timezone.utc)
        cycle_id = uuid.uuid4().hex
        cycle_log = logger.bind(cycle_id=cycle_id, markets=len(entries))
        cycle_log.info("cycle_start", threshold_delta=self._threshold_delta)

        outcomes: list[MarketOutcome] = []
        for entry in entries:
            try:
                outcome = self._process(entry, started_at, cycle_log)
            except Exception as exc:
                cycle_log.error(
                    "market_failed",
                    market=entry.name,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
                outcome = MarketOutcome(
                    market=entry.name,
                    status=OutcomeStatus.ERROR,
                    held_before=entry.position.mode if entry.position else None,
                    held_after=entry.position.mode if entry.position else None,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
            outcomes.append(outcome)

        elapsed_ms = round((time.monotonic() - t0) * 1000, 2)
        counts = {s: sum(1 for o in outcomes if o.status is s) for s in OutcomeStatus}
        explain = f"Cycle at {started_at.isoformat()}: {len(outcomes)} markets"
        if outcomes:
            explain += "; " + ", ".join(f"{s.value}={n}" for s, n in counts.items() if n)
        explain += "."
        cycle_log.info(
            "cycle_complete",
            elapsed_ms=elapsed_ms,
            failures=sum(1 for o in outcomes if not o.ok),
            total_value_usd=round(self._ledger.total_value_usd, 2),
        )
        return CycleReport(
            cycle_id=cycle_id,
            started_at=started_at,
            outcomes=tuple(outcomes),
            elapsed_ms=elapsed_ms,
            explain=explain,
        )

    def _process(self, entry: MarketEntry, now: datetime, cycle_log: Any) -> MarketOutcome:
        mlog = cycle_log.bind(market=entry.name)
        held_before = entry.position.mode if entry.position else None

        snapshot = self._snapshots.refresh(entry.config, now=now)
        self._ledger.update_snapshot(entry, snapshot)
        self._engine.revalue(entry)

        optimal = select_mode(snapshot, self._threshold_delta)
        fixed_vs_underlying, underlying_vs_implied = yield_deltas(snapshot)
        mlog.info(
            "mode_selected",
            state=entry.state,
            optimal_mode=optimal,
            fixed_vs_underlying=round(fixed_vs_underlying, 6),
            underlying_vs_implied=round(underlying_vs_implied, 6),
            expired=snapshot.expired,
        )

        base = {"market": entry.name, "held_before": held_before, "snapshot": snapshot}
        try:
            action = self._engine.reconcile(entry, optimal)
        except TransitionFailure as exc:
            mlog.warning(
                "transition_failed", step=exc.step, mode=exc.mode,
                state=entry.state, error_message=str(exc),
            )
            return MarketOutcome(
                **base,
                optimal_mode=optimal,
                status=OutcomeStatus.TRANSITION_FAILED,
                held_after=entry.position.mode if entry.position else None,
                failed_step=exc.step,
                error_type=type(exc.__cause__ or exc).__name__,
                error_message=str(exc),
            )
        except InvalidMode as exc:
            mlog.error("invalid_mode", error_message=str(exc))
            return MarketOutcome(
                **base,
                status=OutcomeStatus.INVALID_MODE,
                held_after=entry.position.mode if entry.position else None,
                error_type=type(exc).__name__,
                error_message=str(exc),
            )

        mlog.info("market_reconciled", action=action.value, state=entry.state)
        return MarketOutcome(
            **base,
            optimal_mode=optimal,
            status=_ACTION_STATUS[action],
            held_after=entry.position.mode if entry.position else None,
        )
