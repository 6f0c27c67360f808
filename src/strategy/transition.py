"""Transition engine — move a market from its held mode to the optimal one.

Per-market state machine::

    NO_POSITION   × any mode   → enter(mode)             → HOLDING(mode)
    HOLDING(m)    × m          → hold (no trade)
    HOLDING(m)    × m' != m    → exit(m), enter(m')      → HOLDING(m')

Exit and enter are separate fallible steps.  A failed step leaves the
ledger exactly as it was before that step, so a switch whose exit
succeeded but whose entry failed ends in NO_POSITION with the funds in
the base asset; the next cycle enters fresh.
"""

from __future__ import annotations

from enum import Enum

import structlog

from src.core.config import ChainConfig, ExecutionConfig, MarketConfig
from src.core.errors import ExecutionError, InvalidMode, TransitionFailure
from src.execution.executor import ExecutionResult, TradeExecutor
from src.pendle.models import TradeIntent
from src.pendle.units import from_base_units, to_base_units
from src.strategy.ledger import MarketEntry, PositionLedger
from src.strategy.models import Mode, Position
from src.strategy.protocols import TradeRouter

logger = structlog.get_logger(__name__)


class TransitionAction(str, Enum):
    """What :meth:`TransitionEngine.reconcile` did."""

    HOLD = "hold"
    ENTER = "enter"
    SWITCH = "switch"


def _require_mode(value: object) -> Mode:
    if not isinstance(value, Mode):
        raise InvalidMode(f"Unrecognised mode {value!r}; expected one of {[m.value for m in Mode]}")
    return value


def instrument_for(market: MarketConfig, mode: Mode) -> str:
    """Address of the token held in ``mode`` (the market contract is the LP token)."""
    if mode is Mode.FIXED:
        return market.pt_address
    if mode is Mode.FLOATING:
        return market.yt_address
    if mode is Mode.LIQUIDITY:
        return market.market_address
    raise InvalidMode(f"Unrecognised mode {mode!r}")


class TransitionEngine:
    """Reconciles each market's held position with its optimal mode."""

    def __init__(
        self,
        router: TradeRouter,
        executor: TradeExecutor,
        ledger: PositionLedger,
        *,
        chain: ChainConfig,
        execution: ExecutionConfig,
    ) -> None:
        self._router = router
        self._executor = executor
        self._ledger = ledger
        self._base_asset = chain.base_asset_address
        self._base_decimals = chain.base_asset_decimals
        self._receiver = execution.wallet_address
        self._slippage_pct = execution.slippage_pct

    # ── public ────────────────────────────────────────────────────────

    def reconcile(self, entry: MarketEntry, optimal_mode: Mode) -> TransitionAction:
        """Drive ``entry`` toward ``optimal_mode``.

        Raises:
            InvalidMode:       ``optimal_mode`` (or the held mode) is not a Mode.
            TransitionFailure: an exit or entry trade failed.
        """
        optimal_mode = _require_mode(optimal_mode)
        mlog = logger.bind(market=entry.name, optimal_mode=optimal_mode.value)

        if entry.position is None:
            mlog.info("entering_position", state=entry.state)
            self._enter(entry, optimal_mode)
            return TransitionAction.ENTER

        held = _require_mode(entry.position.mode)
        if held is optimal_mode:
            mlog.info("holding_position", mode=held.value)
            return TransitionAction.HOLD

        mlog.info("switching_position", from_mode=held.value, to_mode=optimal_mode.value)
        self._exit(entry)
        self._enter(entry, optimal_mode)
        return TransitionAction.SWITCH

    def revalue(self, entry: MarketEntry) -> None:
        """Mark the held position to the latest snapshot price.

        A zero price means the quote is missing; the last value is kept.
        """
        position = entry.position
        if position is None:
            return
        mode = _require_mode(position.mode)
        if mode is Mode.FIXED:
            price = entry.snapshot.pt_price
        elif mode is Mode.FLOATING:
            price = entry.snapshot.yt_price
        elif mode is Mode.LIQUIDITY:
            price = entry.snapshot.lp_price
        else:
            raise InvalidMode(f"Unrecognised mode {mode!r}")

        if price <= 0:
            return
        value = from_base_units(position.size, entry.config.token_decimals) * price
        self._ledger.mark(entry, value)

    # ── steps ─────────────────────────────────────────────────────────

    def _enter(self, entry: MarketEntry, mode: Mode) -> None:
        cfg = entry.config
        instrument = instrument_for(cfg, mode)
        amount_in = to_base_units(cfg.usd_allocation, self._base_decimals)

        try:
            if mode is Mode.LIQUIDITY:
                intent = self._router.build_add_liquidity(
                    cfg.market_address, self._receiver, self._base_asset,
                    amount_in, self._slippage_pct,
                )
            else:
                intent = self._router.build_swap(
                    cfg.market_address, self._receiver, self._base_asset,
                    instrument, amount_in, self._slippage_pct,
                )
            self._execute(intent)
        except Exception as exc:
            logger.warning(
                "enter_failed", market=entry.name, mode=mode.value,
                error_type=type(exc).__name__, error=str(exc),
            )
            raise TransitionFailure(
                f"Entering {mode.value} on {entry.name} failed: {exc}",
                market=entry.name, step="enter", mode=mode.value,
            ) from exc

        self._ledger.open_position(
            entry,
            Position(
                mode=mode,
                size=intent.min_out,
                instrument_address=instrument,
                initial_value_usd=cfg.usd_allocation,
                current_value_usd=cfg.usd_allocation,
            ),
        )

    def _exit(self, entry: MarketEntry) -> None:
        cfg = entry.config
        position = entry.position
        if position is None:
            return
        mode = _require_mode(position.mode)

        try:
            if mode is Mode.LIQUIDITY:
                intent = self._router.build_remove_liquidity(
                    cfg.market_address, self._receiver, position.size,
                    self._base_asset, self._slippage_pct,
                )
            elif mode in (Mode.FIXED, Mode.FLOATING):
                intent = self._router.build_swap(
                    cfg.market_address, self._receiver, position.instrument_address,
                    self._base_asset, position.size, self._slippage_pct,
                )
            else:
                raise InvalidMode(f"Unrecognised mode {mode!r}")
            self._execute(intent)
        except InvalidMode:
            raise
        except Exception as exc:
            logger.warning(
                "exit_failed", market=entry.name, mode=mode.value,
                error_type=type(exc).__name__, error=str(exc),
            )
            raise TransitionFailure(
                f"Exiting {mode.value} on {entry.name} failed: {exc}",
                market=entry.name, step="exit", mode=mode.value,
            ) from exc

        self._ledger.close_position(entry)

    def _execute(self, intent: TradeIntent) -> ExecutionResult:
        result = self._executor.execute(intent)
        if not result.success:
            raise ExecutionError(
                result.error or f"{intent.kind.value} on {intent.market_address} not confirmed"
            )
        logger.info(
            "trade_confirmed",
            kind=intent.kind.value,
            market=intent.market_address,
            min_out=str(intent.min_out),
            confirmed_out=str(result.confirmed_amount_out),
            tx_hash=result.tx_hash,
        )
        return result
