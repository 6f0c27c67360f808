"""Strategy data models — position modes, yield snapshots, positions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ── Enums ────────────────────────────────────────────────────────────


class Mode(str, Enum):
    """The three mutually exclusive ways to hold a market."""

    FIXED = "PT"
    FLOATING = "YT"
    LIQUIDITY = "LP"


# ── Yield snapshot ───────────────────────────────────────────────────


class YieldSnapshot(BaseModel):
    """Per-market yield signals, replaced wholesale on every refresh.

    All yields are decimals (0.05 = 5% APY).  ``expired`` is derived from
    ``days_to_maturity`` when omitted and must agree with it when given.
    An empty snapshot (the state before the first refresh) is expired.
    """

    model_config = ConfigDict(frozen=True)

    fixed_yield: float = 0.0
    floating_implied_yield: float = 0.0
    underlying_yield: float = 0.0
    days_to_maturity: float = Field(default=0.0, ge=0)
    expired: bool = True
    pt_price: float = 0.0
    yt_price: float = 0.0
    lp_price: float = 0.0
    as_of: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_expired(cls, data: Any) -> Any:
        if isinstance(data, dict) and "expired" not in data:
            data = {**data, "expired": float(data.get("days_to_maturity", 0.0)) <= 0}
        return data

    @model_validator(mode="after")
    def _check_expired(self) -> "YieldSnapshot":
        if self.expired != (self.days_to_maturity <= 0):
            raise ValueError(
                f"expired={self.expired} contradicts days_to_maturity={self.days_to_maturity}"
            )
        return self


# ── Position ─────────────────────────────────────────────────────────


class Position(BaseModel):
    """The single instrument currently held in a market."""

    model_config = ConfigDict(frozen=True)

    mode: Mode
    size: int = Field(ge=0, description="Instrument amount in integer base units")
    instrument_address: str
    initial_value_usd: float = Field(ge=0)
    current_value_usd: float = Field(ge=0)

    @property
    def pnl_usd(self) -> float:
        return self.current_value_usd - self.initial_value_usd
