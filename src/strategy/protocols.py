"""Collaborator protocols — what the engine needs from pricing and routing.

``PendleClient`` satisfies both; tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from src.pendle.models import ApyPoint, TradeIntent


class PricingSource(Protocol):
    def get_token_prices(self, addresses: list[str]) -> dict[str, float]:
        ...

    def get_apy_history(self, market_address: str) -> list[ApyPoint]:
        ...


class TradeRouter(Protocol):
    def build_swap(
        self,
        market_address: str,
        receiver: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        slippage_pct: float = 0.5,
    ) -> TradeIntent:
        ...

    def build_add_liquidity(
        self,
        market_address: str,
        receiver: str,
        token_in: str,
        amount_in: int,
        slippage_pct: float = 0.5,
    ) -> TradeIntent:
        ...

    def build_remove_liquidity(
        self,
        market_address: str,
        receiver: str,
        lp_amount_in: int,
        token_out: str,
        slippage_pct: float = 0.5,
    ) -> TradeIntent:
        ...
