"""Position ledger — in-memory per-market state for the running process."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.core.config import MarketConfig
from src.core.errors import ConfigError
from src.strategy.models import Mode, Position, YieldSnapshot

logger = structlog.get_logger(__name__)


class MarketEntry(BaseModel):
    """Static market config plus the mutable state the engine works on.

    ``current_mode`` is meaningful only while ``position`` is set; a
    held position's mode always equals it.
    """

    model_config = ConfigDict(validate_assignment=True)

    config: MarketConfig
    snapshot: YieldSnapshot = Field(default_factory=YieldSnapshot)
    current_mode: Mode = Mode.FIXED
    position: Position | None = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> str:
        """``NO_POSITION`` or ``HOLDING(<mode>)``."""
        if self.position is None:
            return "NO_POSITION"
        return f"HOLDING({self.position.mode.value})"


class PositionLedger:
    """Insertion-ordered map of market name → MarketEntry.

    Built once from config; the set of markets never changes afterwards.
    Only the transition engine calls the position mutators
    (:meth:`open_position`, :meth:`close_position`, :meth:`mark`).
    """

    def __init__(self, markets: Iterable[MarketConfig]) -> None:
        self._entries: dict[str, MarketEntry] = {}
        for cfg in markets:
            if cfg.name in self._entries:
                raise ConfigError(f"Market {cfg.name!r} configured twice")
            self._entries[cfg.name] = MarketEntry(config=cfg)
        logger.info("ledger_initialised", markets=list(self._entries))

    # ── lookup ────────────────────────────────────────────────────────

    def get(self, name: str) -> MarketEntry:
        """Look up by market name.  Raises ``KeyError`` if missing."""
        if name not in self._entries:
            raise KeyError(
                f"Market {name!r} not in ledger.  Available: {list(self._entries)}"
            )
        return self._entries[name]

    def entries(self) -> list[MarketEntry]:
        return list(self._entries.values())

    def __iter__(self) -> Iterator[MarketEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    @property
    def total_value_usd(self) -> float:
        """Sum of the marked value of every held position."""
        return sum(e.position.current_value_usd for e in self if e.position is not None)

    # ── mutation ──────────────────────────────────────────────────────

    def update_snapshot(self, entry: MarketEntry, snapshot: YieldSnapshot) -> None:
        entry.snapshot = snapshot

    def open_position(self, entry: MarketEntry, position: Position) -> None:
        """Record a freshly entered position and make its mode current."""
        entry.position = position
        entry.current_mode = position.mode
        logger.info(
            "position_opened",
            market=entry.name,
            mode=position.mode.value,
            size=str(position.size),
            instrument=position.instrument_address,
            value_usd=position.initial_value_usd,
        )

    def close_position(self, entry: MarketEntry) -> None:
        """Forget the held position; funds are back in the base asset."""
        closed = entry.position
        entry.position = None
        logger.info(
            "position_closed",
            market=entry.name,
            mode=closed.mode.value if closed else None,
        )

    def mark(self, entry: MarketEntry, current_value_usd: float) -> None:
        """Update the held position's mark-to-market value."""
        if entry.position is None:
            return
        entry.position = entry.position.model_copy(
            update={"current_value_usd": max(0.0, current_value_usd)}
        )
