"""Pendle API data models — frozen Pydantic types parsed from API payloads."""

from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class TradeKind(str, Enum):
    """Which router action a TradeIntent encodes."""

    SWAP = "swap"
    ADD_LIQUIDITY = "add_liquidity"
    REMOVE_LIQUIDITY = "remove_liquidity"


class ApyPoint(BaseModel):
    """One row of a market's APY history."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    timestamp: int | str | None = 0
    underlying_apy: float = Field(
        default=0.0, validation_alias=AliasChoices("underlyingApy", "underlying_apy")
    )
    implied_apy: float = Field(
        default=0.0, validation_alias=AliasChoices("impliedApy", "implied_apy")
    )

    @field_validator("underlying_apy", "implied_apy", mode="before")
    @classmethod
    def _null_as_zero(cls, v):
        return 0.0 if v is None else v


class ActiveMarket(BaseModel):
    """Summary row from the active-markets listing."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    address: str
    name: str = ""
    pt: str = ""
    yt: str = ""
    sy: str = ""
    underlying: str = ""
    expiry: int | str | None = None


class TradeIntent(BaseModel):
    """A ready-to-sign router call built by the Pendle SDK endpoints.

    ``min_out`` is the slippage-protected minimum output: PT/YT or base
    asset for swaps, LP for add-liquidity, base asset for remove-liquidity.
    """

    model_config = ConfigDict(frozen=True)

    kind: TradeKind
    market_address: str
    token_in: str
    token_out: str
    amount_in: int = Field(ge=0)
    call_data: str
    router: str
    target: str
    value: int = 0
    min_out: int = Field(ge=0)
    gas: int | None = None
