"""Exception hierarchy — every error in the system has a typed home."""

from __future__ import annotations


class TradingError(Exception):
    """Base for all application errors."""


class ConfigError(TradingError):
    """Bad config, missing keys, invalid values."""


# ── Pendle API errors ──────────────────────────────────────────────────


class PendleError(TradingError):
    """Base for all Pendle API issues."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PendleRateLimitError(PendleError):
    """429 — rate limited. Retryable after backoff."""

    def __init__(
        self, message: str, *, status_code: int | None = 429, retry_after: float | None = None
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class PendleNetworkError(PendleError):
    """Connection/timeout errors. Retryable."""


class PendleAPIError(PendleError):
    """Other 4xx/5xx from the Pendle API. Not retried."""


# ── Domain errors ──────────────────────────────────────────────────────


class DataUnavailable(TradingError):
    """Pricing or yield-history data missing.  Recovered by defaulting to 0."""


class ExecutionError(TradingError):
    """Trade executor could not approve, submit or confirm a transaction."""


class TransitionFailure(TradingError):
    """An enter or exit trade failed; the market keeps its last good state."""

    def __init__(self, message: str, *, market: str, step: str, mode: str) -> None:
        super().__init__(message)
        self.market = market
        self.step = step
        self.mode = mode


class InvalidMode(TradingError):
    """A value that is not a Mode reached the transition engine."""


class RebalanceError(TradingError):
    """Orchestrator misuse, e.g. a re-entrant cycle."""
