"""Tests for PaperExecutor and build_executor()."""

from __future__ import annotations

import pytest
from eth_account import Account

from src.core.config import Environment, ExecutionConfig
from src.core.errors import ConfigError
from src.execution.executor import ExecutionResult, PaperExecutor, build_executor
from src.execution.live import LiveExecutor
from src.pendle.models import TradeIntent, TradeKind

KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


def _intent(min_out: int = 500) -> TradeIntent:
    return TradeIntent(
        kind=TradeKind.SWAP, market_address="0xm", token_in="0xusdc", token_out="0xpt",
        amount_in=100, call_data="0x", router="0xr", target="0xr", min_out=min_out,
    )


class TestPaperExecutor:
    def test_confirms_at_min_out(self):
        executor = PaperExecutor()

        result = executor.execute(_intent(min_out=777))

        assert result.success
        assert result.confirmed_amount_out == 777
        assert result.tx_hash.startswith("paper-")

    def test_records_intents(self):
        executor = PaperExecutor()
        first, second = _intent(1), _intent(2)
        executor.execute(first)
        executor.execute(second)
        assert executor.executed == [first, second]

    def test_unique_hashes(self):
        executor = PaperExecutor()
        assert executor.execute(_intent()).tx_hash != executor.execute(_intent()).tx_hash


class TestBuildExecutor:
    def test_paper(self):
        assert isinstance(build_executor(ExecutionConfig(env=Environment.PAPER)), PaperExecutor)

    def test_live_requires_private_key(self):
        with pytest.raises(ConfigError, match="PRIVATE_KEY"):
            build_executor(ExecutionConfig(env=Environment.LIVE))

    def test_live_rejects_invalid_key(self):
        cfg = ExecutionConfig(env=Environment.LIVE, private_key="0x1234")
        with pytest.raises(ConfigError, match="not a valid key"):
            build_executor(cfg)

    def test_live_wallet_must_match_signer(self):
        cfg = ExecutionConfig(env=Environment.LIVE, private_key=KEY, wallet_address="0xsomeoneelse")
        with pytest.raises(ConfigError, match="does not match"):
            build_executor(cfg)

    def test_live(self):
        wallet = Account.from_key(KEY).address
        cfg = ExecutionConfig(env=Environment.LIVE, private_key=KEY, wallet_address=wallet.lower())

        executor = build_executor(cfg, chain_id=8453)

        assert isinstance(executor, LiveExecutor)
        assert executor.address == wallet


class TestExecutionResult:
    def test_failed_default(self):
        result = ExecutionResult(success=False, error="reverted")
        assert result.confirmed_amount_out == 0
        assert result.tx_hash == ""
