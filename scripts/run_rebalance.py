"""Run the PT / YT / LP rebalancer over every configured market.

Usage:
    python -m scripts.run_rebalance           # one cycle, then exit
    python -m scripts.run_rebalance --loop    # a cycle every rebalance.interval_secs
    python -m scripts.run_rebalance --loop --json   # JSON log lines even on a TTY
"""

from __future__ import annotations

import sys
import time

import structlog

from src.core import ConfigError, Settings, load_settings, setup_logging
from src.execution import build_executor
from src.orchestrator import CycleReport, RebalanceOrchestrator
from src.pendle import PendleClient
from src.strategy import PositionLedger

log = structlog.get_logger()


def _print_states(ledger: PositionLedger, report: CycleReport) -> None:
    print(f"\n{report.explain}")
    for entry in ledger:
        outcome = report.outcome(entry.name)
        value = f"${entry.position.current_value_usd:,.2f}" if entry.position else "-"
        print(
            f"  {entry.name:<24} {entry.state:<14} {outcome.status.value:<18} {value}"
            + (f"  ({outcome.error_message})" if outcome.error_message else "")
        )
    print(f"  Total marked value: ${ledger.total_value_usd:,.2f}")


def _build(cfg: Settings) -> RebalanceOrchestrator:
    client = PendleClient(cfg.pendle, chain_id=cfg.chain.chain_id)
    executor = build_executor(cfg.execution, cfg.chain.chain_id)
    return RebalanceOrchestrator.from_settings(cfg, client, executor)


def main() -> int:
    args = sys.argv[1:]
    setup_logging(json=True if "--json" in args else None)
    loop = "--loop" in args

    try:
        cfg = load_settings()
        orchestrator = _build(cfg)
    except ConfigError as exc:
        log.error("startup_failed", error=str(exc))
        return 1

    if not cfg.markets:
        log.error("no_markets_configured")
        return 1
    if not cfg.execution.wallet_address:
        log.warning("wallet_address_missing", hint="set WALLET_ADDRESS")

    log.info(
        "rebalancer_start",
        env=cfg.execution.env.value,
        chain_id=cfg.chain.chain_id,
        markets=[m.name for m in cfg.markets],
        threshold_delta_pct=cfg.rebalance.threshold_delta_pct,
        loop=loop,
    )

    while True:
        report = orchestrator.run_cycle()
        _print_states(orchestrator.ledger, report)
        if not loop:
            break
        log.info("sleeping", seconds=cfg.rebalance.interval_secs)
        try:
            time.sleep(cfg.rebalance.interval_secs)
        except KeyboardInterrupt:
            log.info("rebalancer_stopped")
            break

    return 0


if __name__ == "__main__":
    sys.exit(main())
