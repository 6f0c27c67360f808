"""Core — shared config loading, error types, and logging."""

from src.core.config import (
    ChainConfig,
    Environment,
    ExecutionConfig,
    MarketConfig,
    PendleApiConfig,
    RebalanceConfig,
    Settings,
    load_settings,
)
from src.core.errors import (
    ConfigError,
    DataUnavailable,
    ExecutionError,
    InvalidMode,
    PendleAPIError,
    PendleError,
    PendleNetworkError,
    PendleRateLimitError,
    RebalanceError,
    TradingError,
    TransitionFailure,
)
from src.core.logging import setup_logging

__all__ = [
    "ChainConfig",
    "ConfigError",
    "DataUnavailable",
    "Environment",
    "ExecutionConfig",
    "ExecutionError",
    "InvalidMode",
    "MarketConfig",
    "PendleAPIError",
    "PendleApiConfig",
    "PendleError",
    "PendleNetworkError",
    "PendleRateLimitError",
    "RebalanceConfig",
    "RebalanceError",
    "Settings",
    "TradingError",
    "TransitionFailure",
    "load_settings",
    "setup_logging",
]
