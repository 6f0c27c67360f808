"""Config loading — env vars for secrets, config.toml for everything else."""

from __future__ import annotations

import os
import tomllib
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.errors import ConfigError

# ── Enums ──────────────────────────────────────────────────────────────

class Environment(str, Enum):
    PAPER = "paper"
    LIVE = "live"


# ── Models ─────────────────────────────────────────────────────────────

BASE_CHAIN_ID = 8453
BASE_USDC_ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
PENDLE_API_BASE_URL = "https://api-v2.pendle.finance/api/core"
BASE_RPC_URL = "https://mainnet.base.org"


class ChainConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    chain_id: int = BASE_CHAIN_ID
    base_asset_address: str = Field(
        default=BASE_USDC_ADDRESS,
        description="Asset every position is entered from and exited back to",
    )
    base_asset_decimals: int = Field(default=6, ge=0)


class PendleApiConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: str = PENDLE_API_BASE_URL
    timeout_secs: float = Field(default=15.0, gt=0)


class ExecutionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    env: Environment = Environment.PAPER
    wallet_address: str = Field(
        default="", description="Receiver of every swap / liquidity output"
    )
    slippage_pct: float = Field(
        default=0.5, ge=0, lt=100, description="Max slippage in percent (0.5 = 0.5%)"
    )
    rpc_url: str = Field(default=BASE_RPC_URL, description="JSON-RPC endpoint for live signing")
    private_key: str = Field(default="", repr=False, description="Signer key, live only")
    receipt_timeout_secs: float = Field(default=180.0, gt=0)


class RebalanceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    threshold_delta_pct: float = Field(
        default=0.5,
        ge=0,
        description="Yield delta in percent a signal must beat (0.5 = 0.5%)",
    )
    interval_secs: int = Field(
        default=4 * 60 * 60,
        gt=0,
        description="Pause between cycles when the CLI runs in loop mode",
    )

    @property
    def threshold_delta(self) -> float:
        """Threshold as a decimal yield (0.5% → 0.005)."""
        return self.threshold_delta_pct / 100


class MarketConfig(BaseModel):
    """One Pendle market the engine rotates between PT / YT / LP."""

    model_config = ConfigDict(frozen=True)

    name: str
    market_address: str = Field(description="Market contract, also the LP token")
    pt_address: str
    yt_address: str
    sy_address: str = ""
    underlying_address: str = ""
    maturity_ts: int = Field(description="Maturity as a unix timestamp (seconds)")
    usd_allocation: float = Field(gt=0, description="USD deployed into this market")
    token_decimals: int = Field(default=18, ge=0, description="Decimals of PT / YT / LP")

    @field_validator("name")
    @classmethod
    def _non_empty_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("market name must not be empty")
        return v


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    chain: ChainConfig = Field(default_factory=ChainConfig)
    pendle: PendleApiConfig = Field(default_factory=PendleApiConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    rebalance: RebalanceConfig = Field(default_factory=RebalanceConfig)
    markets: tuple[MarketConfig, ...] = ()

    @field_validator("markets")
    @classmethod
    def _unique_names(cls, v: tuple[MarketConfig, ...]) -> tuple[MarketConfig, ...]:
        seen: set[str] = set()
        for m in v:
            if m.name in seen:
                raise ValueError(f"duplicate market name {m.name!r}")
            seen.add(m.name)
        return v


# ── Loading ────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_CONFIG_PATH = _PROJECT_ROOT / "config.toml"


def _load_dotenv(dotenv_path: Path) -> None:
    """Minimal .env loader — no extra dependencies."""
    if not dotenv_path.exists():
        return
    for line in dotenv_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if not key:
            continue
        os.environ.setdefault(key, value)


def load_settings(config_path: Path | None = None) -> Settings:
    """Build Settings from .env (secrets) + env vars + config.toml (tuning)."""
    _load_dotenv(_PROJECT_ROOT / ".env")

    path = config_path or _DEFAULT_CONFIG_PATH
    file_cfg: dict = {}
    if path.exists():
        file_cfg = tomllib.loads(path.read_text())

    pendle_cfg = dict(file_cfg.get("pendle", {}))
    if "PENDLE_API_BASE_URL" in os.environ:
        pendle_cfg["base_url"] = os.environ["PENDLE_API_BASE_URL"]

    exec_cfg = dict(file_cfg.get("execution", {}))
    if "EXECUTION_ENV" in os.environ:
        exec_cfg["env"] = os.environ["EXECUTION_ENV"]
    if "WALLET_ADDRESS" in os.environ:
        exec_cfg["wallet_address"] = os.environ["WALLET_ADDRESS"]
    if "RPC_URL" in os.environ:
        exec_cfg["rpc_url"] = os.environ["RPC_URL"]
    if "PRIVATE_KEY" in os.environ:
        exec_cfg["private_key"] = os.environ["PRIVATE_KEY"]

    try:
        return Settings(
            chain=ChainConfig(**file_cfg.get("chain", {})),
            pendle=PendleApiConfig(**pendle_cfg),
            execution=ExecutionConfig(**exec_cfg),
            rebalance=RebalanceConfig(**file_cfg.get("rebalance", {})),
            markets=tuple(MarketConfig(**m) for m in file_cfg.get("markets", [])),
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid config in {path}: {exc}") from exc
