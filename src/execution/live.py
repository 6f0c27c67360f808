"""Live executor — approve, sign, send and confirm a TradeIntent on-chain."""

from __future__ import annotations

from typing import Any

import structlog
from eth_account import Account
from web3 import Web3
from web3.exceptions import Web3Exception

from src.core.config import ExecutionConfig
from src.core.errors import ConfigError
from src.execution.executor import ExecutionResult
from src.pendle.models import TradeIntent

logger = structlog.get_logger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

ERC20_ABI = [
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

TRANSFER_TOPIC = bytes(Web3.keccak(text="Transfer(address,address,uint256)"))


class LiveExecutor:
    """Signs with a local key and waits for each receipt.

    One ``execute`` is: approve ``token_in`` for the router when the
    allowance is short, send the router call, wait for the receipt.  A
    reverted or unconfirmed transaction comes back as ``success=False``.
    The confirmed output is read from the ERC-20 Transfer of ``token_out``
    to the wallet, falling back to the quoted ``min_out``.
    """

    def __init__(
        self,
        w3: Any,
        private_key: str,
        *,
        chain_id: int,
        receipt_timeout: float = 180.0,
    ) -> None:
        self._w3 = w3
        self._account = Account.from_key(private_key)
        self._chain_id = chain_id
        self._receipt_timeout = receipt_timeout
        self._log = logger.bind(executor="live", wallet=self._account.address, chain_id=chain_id)

    @classmethod
    def from_config(cls, cfg: ExecutionConfig, chain_id: int) -> "LiveExecutor":
        if not cfg.private_key:
            raise ConfigError("Live execution needs PRIVATE_KEY")
        w3 = Web3(Web3.HTTPProvider(cfg.rpc_url, request_kwargs={"timeout": 30}))
        try:
            executor = cls(
                w3, cfg.private_key, chain_id=chain_id, receipt_timeout=cfg.receipt_timeout_secs,
            )
        except ValueError as exc:
            raise ConfigError(f"PRIVATE_KEY is not a valid key: {exc}") from exc
        if cfg.wallet_address.lower() != executor.address.lower():
            raise ConfigError(
                f"WALLET_ADDRESS {cfg.wallet_address!r} does not match the signer {executor.address}"
            )
        return executor

    @property
    def address(self) -> str:
        return self._account.address

    def execute(self, intent: TradeIntent) -> ExecutionResult:
        tlog = self._log.bind(kind=intent.kind.value, market=intent.market_address)
        try:
            if intent.token_in.lower() != ZERO_ADDRESS:
                approved = self._ensure_allowance(intent, tlog)
                if approved is not None and approved["status"] != 1:
                    tlog.error("approve_reverted", token=intent.token_in)
                    return ExecutionResult(
                        success=False,
                        tx_hash=_hex(approved["transactionHash"]),
                        error="approve reverted",
                    )

            receipt = self._send({
                "to": Web3.to_checksum_address(intent.target),
                "data": intent.call_data,
                "value": intent.value,
                **({"gas": intent.gas} if intent.gas else {}),
            })
        except Web3Exception as exc:
            tlog.error("live_trade_failed", error_type=type(exc).__name__, error=str(exc))
            return ExecutionResult(success=False, error=f"{type(exc).__name__}: {exc}")

        tx_hash = _hex(receipt["transactionHash"])
        if receipt["status"] != 1:
            tlog.error("live_trade_reverted", tx_hash=tx_hash)
            return ExecutionResult(success=False, tx_hash=tx_hash, error="transaction reverted")

        received = self._received(receipt, intent.token_out)
        if received is None:
            tlog.warning("transfer_not_found", token_out=intent.token_out, tx_hash=tx_hash)
            received = intent.min_out
        tlog.info("live_trade_confirmed", tx_hash=tx_hash, amount_out=str(received))
        return ExecutionResult(success=True, confirmed_amount_out=received, tx_hash=tx_hash)

    def _ensure_allowance(self, intent: TradeIntent, tlog) -> dict[str, Any] | None:
        """Approve exactly ``amount_in`` when the router's allowance is short."""
        token = self._w3.eth.contract(
            address=Web3.to_checksum_address(intent.token_in), abi=ERC20_ABI,
        )
        spender = Web3.to_checksum_address(intent.router)
        allowance = token.functions.allowance(self.address, spender).call()
        if allowance >= intent.amount_in:
            return None
        tlog.info("approving", token=intent.token_in, spender=intent.router, amount=str(intent.amount_in))
        tx = token.functions.approve(spender, intent.amount_in).build_transaction({
            "from": self.address,
            "chainId": self._chain_id,
            "nonce": self._w3.eth.get_transaction_count(self.address, "pending"),
            "gasPrice": self._w3.eth.gas_price,
        })
        return self._sign_and_wait(tx)

    def _send(self, tx: dict[str, Any]) -> dict[str, Any]:
        tx = {
            **tx,
            "chainId": self._chain_id,
            "nonce": self._w3.eth.get_transaction_count(self.address, "pending"),
            "gasPrice": self._w3.eth.gas_price,
        }
        if "gas" not in tx:
            tx["gas"] = self._w3.eth.estimate_gas({**tx, "from": self.address})
        return self._sign_and_wait(tx)

    def _sign_and_wait(self, tx: dict[str, Any]) -> dict[str, Any]:
        tx = {k: v for k, v in tx.items() if k != "from"}
        signed = self._account.sign_transaction(tx)
        tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        self._log.info("tx_sent", tx_hash=_hex(tx_hash), nonce=tx["nonce"])
        return self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)

    def _received(self, receipt: dict[str, Any], token_out: str) -> int | None:
        """Sum of ``token_out`` Transfer amounts to the wallet, None if absent."""
        wallet = self.address.lower()
        total, seen = 0, False
        for entry in receipt.get("logs", []):
            topics = [bytes(t) for t in entry["topics"]]
            if (
                len(topics) == 3
                and topics[0] == TRANSFER_TOPIC
                and entry["address"].lower() == token_out.lower()
                and "0x" + topics[2][-20:].hex() == wallet
            ):
                total += int.from_bytes(bytes(entry["data"]), "big")
                seen = True
        return total if seen else None


def _hex(value: Any) -> str:
    return "0x" + bytes(value).hex()
