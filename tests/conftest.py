"""Shared fixtures — in-memory pricing, routing and execution fakes."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.core.config import ChainConfig, ExecutionConfig, MarketConfig
from src.execution.executor import ExecutionResult
from src.pendle.models import ApyPoint, TradeIntent, TradeKind
from src.strategy.ledger import PositionLedger
from src.strategy.transition import TransitionEngine

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)
DAY = 86_400
USDC = "0xusdc"
WALLET = "0xwallet"


def make_market(
    name: str = "alpha",
    *,
    days_left: float = 180,
    usd_allocation: float = 100.0,
    token_decimals: int = 18,
) -> MarketConfig:
    """Market whose addresses are derived from its name (``0x<name>-pt`` etc.)."""
    return MarketConfig(
        name=name,
        market_address=f"0x{name}-market",
        pt_address=f"0x{name}-pt",
        yt_address=f"0x{name}-yt",
        sy_address=f"0x{name}-sy",
        underlying_address=f"0x{name}-underlying",
        maturity_ts=int(NOW.timestamp() + days_left * DAY),
        usd_allocation=usd_allocation,
        token_decimals=token_decimals,
    )


class FakePricing:
    """PricingSource backed by dicts; ``fail`` makes every call raise."""

    def __init__(
        self,
        prices: dict[str, float] | None = None,
        apy: dict[str, list[ApyPoint]] | None = None,
        fail: Exception | None = None,
    ) -> None:
        self.prices = prices or {}
        self.apy = apy or {}
        self.fail = fail
        self.calls: list[tuple[str, object]] = []

    def set_market(
        self,
        market: MarketConfig,
        *,
        pt: float = 0.95,
        yt: float = 0.05,
        lp: float = 2.0,
        underlying: float = 0.05,
        implied: float = 0.05,
    ) -> None:
        self.prices.update({
            market.pt_address: pt,
            market.yt_address: yt,
            market.market_address: lp,
        })
        self.apy[market.market_address] = [
            ApyPoint(timestamp=2, underlying_apy=underlying, implied_apy=implied),
            ApyPoint(timestamp=1, underlying_apy=0.0, implied_apy=0.0),
        ]

    def get_token_prices(self, addresses: list[str]) -> dict[str, float]:
        self.calls.append(("prices", tuple(addresses)))
        if self.fail:
            raise self.fail
        return {a: self.prices[a] for a in addresses if a in self.prices}

    def get_apy_history(self, market_address: str) -> list[ApyPoint]:
        self.calls.append(("apy", market_address))
        if self.fail:
            raise self.fail
        return list(self.apy.get(market_address, []))


class FakeRouter:
    """TradeRouter that quotes ``min_out = amount_in * rate`` and records calls.

    ``fail_on`` maps a TradeKind (optionally with a token) to an exception.
    """

    def __init__(self, rate: int = 10**12) -> None:
        self.rate = rate
        self.calls: list[TradeIntent] = []
        self.fail_on: dict[tuple[TradeKind, str | None], Exception] = {}

    def _quote(self, kind: TradeKind, market: str, token_in: str, token_out: str, amount_in: int) -> TradeIntent:
        for key in ((kind, token_out), (kind, None)):
            if key in self.fail_on:
                raise self.fail_on[key]
        intent = TradeIntent(
            kind=kind,
            market_address=market,
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            call_data="0xdeadbeef",
            router="0xrouter",
            target="0xrouter",
            min_out=amount_in * self.rate,
        )
        self.calls.append(intent)
        return intent

    def build_swap(self, market_address, receiver, token_in, token_out, amount_in, slippage_pct=0.5):
        return self._quote(TradeKind.SWAP, market_address, token_in, token_out, amount_in)

    def build_add_liquidity(self, market_address, receiver, token_in, amount_in, slippage_pct=0.5):
        return self._quote(TradeKind.ADD_LIQUIDITY, market_address, token_in, market_address, amount_in)

    def build_remove_liquidity(self, market_address, receiver, lp_amount_in, token_out, slippage_pct=0.5):
        return self._quote(TradeKind.REMOVE_LIQUIDITY, market_address, market_address, token_out, lp_amount_in)


class ScriptedExecutor:
    """Executor that plays back queued results, then succeeds by default.

    Queue entries are ``True`` (success), ``False`` (unconfirmed) or an
    exception instance to raise.
    """

    def __init__(self, script: list[bool | Exception] | None = None) -> None:
        self.script = list(script or [])
        self.executed: list[TradeIntent] = []

    def execute(self, intent: TradeIntent) -> ExecutionResult:
        self.executed.append(intent)
        step = self.script.pop(0) if self.script else True
        if isinstance(step, Exception):
            raise step
        if not step:
            return ExecutionResult(success=False, error="reverted")
        return ExecutionResult(success=True, confirmed_amount_out=intent.min_out, tx_hash="0xtx")


CHAIN = ChainConfig(chain_id=8453, base_asset_address=USDC, base_asset_decimals=6)
EXECUTION = ExecutionConfig(wallet_address=WALLET, slippage_pct=0.5)


def make_engine(
    ledger: PositionLedger,
    router: FakeRouter | None = None,
    executor: ScriptedExecutor | None = None,
) -> TransitionEngine:
    return TransitionEngine(
        router or FakeRouter(),
        executor or ScriptedExecutor(),
        ledger,
        chain=CHAIN,
        execution=EXECUTION,
    )


@pytest.fixture
def market() -> MarketConfig:
    return make_market()


@pytest.fixture
def ledger(market: MarketConfig) -> PositionLedger:
    return PositionLedger([market])


@pytest.fixture
def router() -> FakeRouter:
    return FakeRouter()


@pytest.fixture
def executor() -> ScriptedExecutor:
    return ScriptedExecutor()
