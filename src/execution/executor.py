"""Trade executors — the boundary where a TradeIntent becomes a transaction."""

from __future__ import annotations

import uuid
from typing import Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.core.config import BASE_CHAIN_ID, Environment, ExecutionConfig
from src.core.errors import ConfigError
from src.pendle.models import TradeIntent

logger = structlog.get_logger(__name__)


class ExecutionResult(BaseModel):
    """Outcome of approve + submit + wait-for-confirmation, taken as one step."""

    model_config = ConfigDict(frozen=True)

    success: bool
    confirmed_amount_out: int = Field(default=0, ge=0)
    tx_hash: str = ""
    error: str = ""


class TradeExecutor(Protocol):
    """Anything that can approve, sign, submit and confirm a TradeIntent.

    Implementations either return a result (``success=False`` for a
    reverted or unconfirmed transaction) or raise; the transition engine
    treats both as a failed step.
    """

    def execute(self, intent: TradeIntent) -> ExecutionResult:
        ...


class PaperExecutor:
    """Executor that confirms every intent at its quoted minimum output.

    Keeps the executed intents so a dry run can be inspected afterwards.
    """

    def __init__(self) -> None:
        self.executed: list[TradeIntent] = []
        self._log = logger.bind(executor="paper")

    def execute(self, intent: TradeIntent) -> ExecutionResult:
        tx_hash = f"paper-{uuid.uuid4().hex}"
        self.executed.append(intent)
        self._log.info(
            "paper_trade_confirmed",
            kind=intent.kind.value,
            market=intent.market_address,
            token_in=intent.token_in,
            token_out=intent.token_out,
            amount_in=str(intent.amount_in),
            min_out=str(intent.min_out),
            tx_hash=tx_hash,
        )
        return ExecutionResult(
            success=True, confirmed_amount_out=intent.min_out, tx_hash=tx_hash,
        )


def build_executor(cfg: ExecutionConfig, chain_id: int = BASE_CHAIN_ID) -> TradeExecutor:
    """Executor for the configured environment.

    Live needs ``PRIVATE_KEY`` and a ``WALLET_ADDRESS`` matching it; both
    problems surface as ``ConfigError`` before any trade is attempted.
    """
    if cfg.env == Environment.PAPER:
        return PaperExecutor()
    if cfg.env == Environment.LIVE:
        from src.execution.live import LiveExecutor

        return LiveExecutor.from_config(cfg, chain_id)
    raise ConfigError(f"No executor for env={cfg.env.value!r}")
