"""Tests for LiveExecutor against an in-memory web3 stand-in."""

from __future__ import annotations

from typing import Any

import pytest
from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted

from src.execution.live import TRANSFER_TOPIC, LiveExecutor
from src.pendle.models import TradeIntent, TradeKind

KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
WALLET = Account.from_key(KEY).address
USDC = Web3.to_checksum_address("0x833589fcd6edb6e08f4c7c32d4f71b54bda02913")
ROUTER = Web3.to_checksum_address("0x888888888889758f76e7103c6cbf23abbf58f946")
PT = Web3.to_checksum_address("0x" + "ab" * 20)


def _intent(**overrides: Any) -> TradeIntent:
    fields = dict(
        kind=TradeKind.SWAP,
        market_address="0x" + "cd" * 20,
        token_in=USDC,
        token_out=PT,
        amount_in=35_000_000,
        call_data="0xdeadbeef",
        router=ROUTER,
        target=ROUTER,
        min_out=10**18,
    )
    fields.update(overrides)
    return TradeIntent(**fields)


def _transfer(token: str, to: str, amount: int) -> dict[str, Any]:
    return {
        "address": token,
        "topics": [
            TRANSFER_TOPIC,
            bytes(12) + bytes.fromhex(ROUTER[2:]),
            bytes(12) + bytes.fromhex(to[2:]),
        ],
        "data": amount.to_bytes(32, "big"),
    }


class _Call:
    def __init__(self, result: Any) -> None:
        self._result = result

    def call(self) -> Any:
        return self._result

    def build_transaction(self, params: dict[str, Any]) -> dict[str, Any]:
        return {**params, **self._result}


class _Token:
    def __init__(self, eth: "_FakeEth", address: str) -> None:
        self.functions = self
        self._eth = eth
        self._address = address

    def allowance(self, owner: str, spender: str) -> _Call:
        self._eth.allowance_queries.append((self._address, owner, spender))
        return _Call(self._eth.allowance)

    def approve(self, spender: str, amount: int) -> _Call:
        self._eth.approvals.append((self._address, spender, amount))
        return _Call({"to": self._address, "data": "0x095ea7b3", "value": 0, "gas": 60_000})


class _FakeEth:
    """Nonce-tracking chain: each sent tx gets the next scripted receipt."""

    def __init__(self, receipts: list[dict[str, Any] | Exception], allowance: int = 0) -> None:
        self.receipts = list(receipts)
        self.allowance = allowance
        self.allowance_queries: list[tuple] = []
        self.approvals: list[tuple] = []
        self.sent: list[bytes] = []
        self.estimates: list[dict[str, Any]] = []
        self.nonce = 7
        self.gas_price = 10**9

    def contract(self, address: str, abi: list[dict]) -> _Token:
        return _Token(self, address)

    def get_transaction_count(self, address: str, block: str) -> int:
        return self.nonce

    def estimate_gas(self, tx: dict[str, Any]) -> int:
        self.estimates.append(tx)
        return 300_000

    def send_raw_transaction(self, raw: bytes) -> bytes:
        self.sent.append(bytes(raw))
        self.nonce += 1
        return len(self.sent).to_bytes(32, "big")

    def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: float) -> dict[str, Any]:
        item = self.receipts.pop(0)
        if isinstance(item, Exception):
            raise item
        return {"transactionHash": tx_hash, "logs": [], **item}


class _FakeWeb3:
    def __init__(self, eth: _FakeEth) -> None:
        self.eth = eth


def _executor(eth: _FakeEth) -> LiveExecutor:
    return LiveExecutor(_FakeWeb3(eth), KEY, chain_id=8453, receipt_timeout=5)


class TestExecute:
    def test_approves_then_trades(self):
        eth = _FakeEth([{"status": 1}, {"status": 1, "logs": [_transfer(PT, WALLET, 123)]}])

        result = _executor(eth).execute(_intent())

        assert result.success
        assert result.confirmed_amount_out == 123
        assert result.tx_hash == "0x" + (2).to_bytes(32, "big").hex()
        assert eth.approvals == [(USDC, ROUTER, 35_000_000)]
        assert len(eth.sent) == 2

    def test_transactions_signed_by_wallet(self):
        eth = _FakeEth([{"status": 1}, {"status": 1}])
        _executor(eth).execute(_intent())
        assert [Account.recover_transaction(raw) for raw in eth.sent] == [WALLET, WALLET]

    def test_sufficient_allowance_skips_approve(self):
        eth = _FakeEth([{"status": 1}], allowance=10**30)

        result = _executor(eth).execute(_intent())

        assert result.success
        assert eth.approvals == []
        assert len(eth.sent) == 1
        assert eth.allowance_queries == [(USDC, WALLET, ROUTER)]

    def test_quoted_gas_used_without_estimate(self):
        eth = _FakeEth([{"status": 1}], allowance=10**30)
        _executor(eth).execute(_intent(gas=250_000))
        assert eth.estimates == []

    def test_gas_estimated_when_not_quoted(self):
        eth = _FakeEth([{"status": 1}], allowance=10**30)
        _executor(eth).execute(_intent())
        (estimate,) = eth.estimates
        assert estimate["from"] == WALLET
        assert estimate["to"] == ROUTER
        assert estimate["data"] == "0xdeadbeef"

    def test_missing_transfer_falls_back_to_min_out(self):
        eth = _FakeEth([{"status": 1, "logs": [_transfer(USDC, WALLET, 5)]}], allowance=10**30)
        result = _executor(eth).execute(_intent())
        assert result.confirmed_amount_out == 10**18

    def test_transfers_to_others_ignored(self):
        other = Web3.to_checksum_address("0x" + "11" * 20)
        logs = [_transfer(PT, other, 999), _transfer(PT, WALLET, 40), _transfer(PT, WALLET, 2)]
        eth = _FakeEth([{"status": 1, "logs": logs}], allowance=10**30)
        assert _executor(eth).execute(_intent()).confirmed_amount_out == 42


class TestFailures:
    def test_reverted_trade(self):
        eth = _FakeEth([{"status": 0}], allowance=10**30)

        result = _executor(eth).execute(_intent())

        assert not result.success
        assert result.error == "transaction reverted"
        assert result.tx_hash

    def test_reverted_approve_stops_before_trade(self):
        eth = _FakeEth([{"status": 0}])

        result = _executor(eth).execute(_intent())

        assert not result.success
        assert result.error == "approve reverted"
        assert len(eth.sent) == 1

    def test_receipt_timeout(self):
        eth = _FakeEth([TimeExhausted("not mined")], allowance=10**30)

        result = _executor(eth).execute(_intent())

        assert not result.success
        assert result.error.startswith("TimeExhausted")

    def test_native_input_skips_approve(self):
        eth = _FakeEth([{"status": 1}])

        result = _executor(eth).execute(
            _intent(token_in="0x0000000000000000000000000000000000000000", value=10**15)
        )

        assert result.success
        assert eth.allowance_queries == []


@pytest.mark.parametrize("kind", [TradeKind.ADD_LIQUIDITY, TradeKind.REMOVE_LIQUIDITY])
def test_liquidity_intents_use_same_path(kind):
    eth = _FakeEth([{"status": 1}], allowance=10**30)
    assert _executor(eth).execute(_intent(kind=kind)).success
