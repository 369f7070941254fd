"""
Shared fixtures: an in-memory EVM node and a signer that needs no keys.

The fake node keeps a mempool keyed by (sender, nonce) and enforces
replacement-transaction pricing: a second transaction at an occupied nonce is
only accepted when it pays a strictly higher gas price, and the transaction it
replaces disappears from the node.
"""

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from gateway.chains.rpc import RpcError
from gateway.config import BASE_DIR, Settings, load_connector_config
from gateway.core.models import TransactionData, TransactionReceipt


FIXTURES_DIR = Path(__file__).parent / "fixtures"

SENDER = "0x1111111111111111111111111111111111111111"
TESTNET_CHAIN_ID = 49797


class FakeChainRpc:
    """Just enough of ChainRpcClient to drive the gateway against in-memory state."""

    def __init__(
        self,
        *,
        chain_id: int = TESTNET_CHAIN_ID,
        block_number: int = 100,
        gas_price_wei: Optional[int] = 50 * 10**9,
        priority_fee_wei: Optional[int] = 0,
        supports_priority_fee: bool = False,
    ):
        self.chain_id = chain_id
        self.supports_priority_fee = supports_priority_fee
        self.block_number = block_number
        self.gas_price_wei = gas_price_wei
        self.priority_fee_wei = priority_fee_wei

        self.transactions: Dict[str, TransactionData] = {}
        self.receipts: Dict[str, TransactionReceipt] = {}
        self.mempool: Dict[Tuple[str, int], str] = {}
        self.mined_nonces: Dict[str, int] = {}
        self.balances: Dict[str, int] = {}
        self.call_results: Dict[Tuple[str, str], str] = {}

        self.calls: List[str] = []
        self.errors: Dict[str, BaseException] = {}
        self.closed = False
        self._listeners = []

    # Plumbing

    def on_request(self, listener) -> None:
        self._listeners.append(listener)

    def _request(self, method: str) -> None:
        self.calls.append(method)
        for listener in self._listeners:
            listener({"action": "request", "method": method})
        error = self.errors.get(method)
        if error is not None:
            raise error

    # Seeding

    def add_transaction(self, data: Dict[str, Any], receipt: Optional[Dict[str, Any]] = None) -> str:
        tx = TransactionData.from_rpc(data)
        self.transactions[tx.hash] = tx
        if receipt is not None:
            self.receipts[tx.hash] = TransactionReceipt.from_rpc(receipt)
        elif tx.block_number is None:
            self.mempool[(tx.from_address.lower(), tx.nonce)] = tx.hash
        return tx.hash

    def mine(self) -> List[str]:
        """Include every mempool transaction in a new block with a successful receipt."""
        self.block_number += 1
        mined = []
        for (sender, nonce), tx_hash in sorted(self.mempool.items()):
            tx = self.transactions[tx_hash]
            tx.block_number = self.block_number
            tx.block_hash = "0x" + format(self.block_number, "064x")
            self.receipts[tx_hash] = TransactionReceipt(
                transaction_hash=tx_hash,
                block_number=self.block_number,
                block_hash=tx.block_hash,
                gas_used=21000 if tx.input == "0x" else tx.gas_limit // 2,
                effective_gas_price=tx.gas_price,
                status=1,
                from_address=tx.from_address,
                to_address=tx.to_address,
            )
            self.mined_nonces[sender] = max(self.mined_nonces.get(sender, -1), nonce)
            mined.append(tx_hash)
        self.mempool.clear()
        return mined

    # JSON-RPC surface

    async def get_block_number(self) -> int:
        self._request("eth_blockNumber")
        return self.block_number

    async def get_fee_base(self) -> Optional[int]:
        self._request("eth_gasPrice")
        return self.gas_price_wei

    async def get_priority_fee(self) -> Optional[int]:
        self._request("eth_maxPriorityFeePerGas")
        return self.priority_fee_wei

    async def get_transaction(self, tx_hash: str) -> Optional[TransactionData]:
        self._request("eth_getTransactionByHash")
        return self.transactions.get(tx_hash)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        self._request("eth_getTransactionReceipt")
        return self.receipts.get(tx_hash)

    async def send_raw_transaction(self, raw_tx: str) -> str:
        self._request("eth_sendRawTransaction")
        payload = json.loads(bytes.fromhex(raw_tx[2:]).decode())
        sender = payload["from"].lower()
        nonce = payload["nonce"]
        gas_price = payload.get("gasPrice", payload.get("maxFeePerGas", 0))

        if nonce <= self.mined_nonces.get(sender, -1):
            raise RpcError("nonce too low", code=-32000)

        key = (sender, nonce)
        existing_hash = self.mempool.get(key)
        if existing_hash is not None:
            existing = self.transactions[existing_hash]
            existing_price = existing.gas_price or existing.max_fee_per_gas or 0
            if gas_price <= existing_price:
                raise RpcError("replacement transaction underpriced", code=-32000)
            del self.transactions[existing_hash]

        tx_hash = "0x" + hashlib.sha256(raw_tx.encode()).hexdigest()
        self.transactions[tx_hash] = TransactionData(
            hash=tx_hash,
            nonce=nonce,
            from_address=payload["from"],
            to_address=payload.get("to"),
            value=payload.get("value", 0),
            gas_limit=payload["gas"],
            gas_price=payload.get("gasPrice"),
            max_fee_per_gas=payload.get("maxFeePerGas"),
            max_priority_fee_per_gas=payload.get("maxPriorityFeePerGas"),
            input=payload.get("data", "0x"),
            chain_id=payload.get("chainId"),
            type=2 if "maxFeePerGas" in payload else 0,
        )
        self.mempool[key] = tx_hash
        return tx_hash

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        self._request("eth_getTransactionCount")
        sender = address.lower()
        count = self.mined_nonces.get(sender, -1) + 1
        if block == "pending":
            pending = [nonce for (s, nonce) in self.mempool if s == sender]
            if pending:
                count = max(count, max(pending) + 1)
        return count

    async def get_balance(self, address: str, block: str = "latest") -> int:
        self._request("eth_getBalance")
        return self.balances.get(address.lower(), 0)

    async def call(self, to: str, data: str, block: str = "latest") -> str:
        self._request("eth_call")
        return self.call_results.get((to.lower(), data), "0x")

    async def close(self) -> None:
        self.closed = True


class RecordingSigner:
    """Signer stand-in: the "raw" transaction is the hex-encoded JSON of the tx dict."""

    def __init__(self, address: str = SENDER):
        self.address = address
        self.signed: List[Dict[str, Any]] = []

    def sign_transaction(self, tx: Dict[str, Any]) -> str:
        assert "from" not in tx
        self.signed.append(dict(tx))
        payload = dict(tx, **{"from": self.address})
        return "0x" + json.dumps(payload, sort_keys=True).encode().hex()


def load_fixture(name: str) -> Dict[str, Any]:
    with open(FIXTURES_DIR / name, "r") as f:
        return json.load(f)


@pytest.fixture
def fake_node() -> FakeChainRpc:
    return FakeChainRpc()


@pytest.fixture
def signer() -> RecordingSigner:
    return RecordingSigner()


@pytest.fixture
def fixture_loader():
    return load_fixture


@pytest.fixture
def fake_node_factory():
    return FakeChainRpc


@pytest.fixture
def signer_factory():
    return RecordingSigner


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        conf_dir=BASE_DIR / "conf",
        chains=["energi"],
        metrics_log_interval_seconds=300,
        wallet_private_keys=[],
    )


@pytest.fixture
def testnet_config():
    return load_connector_config("energi", "testnet", BASE_DIR / "conf")


@pytest.fixture
def manual_gas_price(testnet_config) -> Decimal:
    return testnet_config.manual_gas_price
