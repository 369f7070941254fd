"""
Transaction tracking models and types.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


GWEI = Decimal(10) ** 9


def _to_int(value: Any) -> Optional[int]:
    """Parse a JSON-RPC quantity (hex string) or a plain integer."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    raise TypeError(f"Cannot parse quantity from {value!r}")


def gwei_to_wei(value: Decimal) -> int:
    return int(Decimal(value) * GWEI)


# A reverted transaction that burned more than this share of its gas limit is
# reported as out of gas rather than as a plain revert.
OUT_OF_GAS_RATIO = Decimal("0.9")


class TransactionStatus(str, Enum):
    """Classification of a polled transaction."""
    UNKNOWN = "unknown"          # Hash unknown to the node (never sent, evicted or replaced)
    PENDING = "pending"          # Known to the node, no receipt yet
    CONFIRMED = "confirmed"      # Mined, executed without revert
    FAILED = "failed"            # Mined, reverted
    OUT_OF_GAS = "out_of_gas"    # Mined, reverted after burning the gas limit

    @property
    def poll_code(self) -> int:
        """Integer status used by gateway clients (-1 unknown, 0 pending, 1 mined)."""
        if self is TransactionStatus.UNKNOWN:
            return -1
        if self is TransactionStatus.PENDING:
            return 0
        return 1

    @property
    def is_final(self) -> bool:
        return self in {
            TransactionStatus.CONFIRMED,
            TransactionStatus.FAILED,
            TransactionStatus.OUT_OF_GAS,
        }


@dataclass(frozen=True)
class FeeEstimate:
    """Gas price in native units per gas (gwei scale)."""
    value: Decimal
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = "manual"                      # "manual" or "node"


@dataclass
class TransactionData:
    """Parsed eth_getTransactionByHash result."""
    hash: str
    nonce: int
    from_address: str
    to_address: Optional[str]
    value: int
    gas_limit: int
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None       # EIP-1559
    max_priority_fee_per_gas: Optional[int] = None
    input: str = "0x"
    block_number: Optional[int] = None          # None while in the mempool
    block_hash: Optional[str] = None
    chain_id: Optional[int] = None
    type: int = 0

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "TransactionData":
        return cls(
            hash=data["hash"],
            nonce=_to_int(data["nonce"]),
            from_address=data["from"],
            to_address=data.get("to"),
            value=_to_int(data.get("value", 0)) or 0,
            gas_limit=_to_int(data.get("gas", data.get("gasLimit", 0))) or 0,
            gas_price=_to_int(data.get("gasPrice")),
            max_fee_per_gas=_to_int(data.get("maxFeePerGas")),
            max_priority_fee_per_gas=_to_int(data.get("maxPriorityFeePerGas")),
            input=data.get("input", data.get("data", "0x")),
            block_number=_to_int(data.get("blockNumber")),
            block_hash=data.get("blockHash"),
            chain_id=_to_int(data.get("chainId")),
            type=_to_int(data.get("type", 0)) or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "nonce": self.nonce,
            "from": self.from_address,
            "to": self.to_address,
            "value": str(self.value),
            "gasLimit": str(self.gas_limit),
            "gasPrice": str(self.gas_price) if self.gas_price is not None else None,
            "maxFeePerGas": str(self.max_fee_per_gas) if self.max_fee_per_gas is not None else None,
            "maxPriorityFeePerGas": (
                str(self.max_priority_fee_per_gas) if self.max_priority_fee_per_gas is not None else None
            ),
            "data": self.input,
            "blockNumber": self.block_number,
            "blockHash": self.block_hash,
            "chainId": self.chain_id,
            "type": self.type,
        }


@dataclass
class TransactionReceipt:
    """Parsed eth_getTransactionReceipt result."""
    transaction_hash: str
    block_number: int
    block_hash: str
    gas_used: int
    cumulative_gas_used: int = 0
    effective_gas_price: Optional[int] = None
    status: Optional[int] = None                # 1 success, 0 revert, None pre-Byzantium
    contract_address: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "TransactionReceipt":
        return cls(
            transaction_hash=data["transactionHash"],
            block_number=_to_int(data["blockNumber"]),
            block_hash=data["blockHash"],
            gas_used=_to_int(data["gasUsed"]),
            cumulative_gas_used=_to_int(data.get("cumulativeGasUsed", 0)) or 0,
            effective_gas_price=_to_int(data.get("effectiveGasPrice")),
            status=_to_int(data.get("status")),
            contract_address=data.get("contractAddress"),
            from_address=data.get("from"),
            to_address=data.get("to"),
            logs=list(data.get("logs") or []),
        )

    @property
    def succeeded(self) -> bool:
        return self.status != 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactionHash": self.transaction_hash,
            "blockNumber": self.block_number,
            "blockHash": self.block_hash,
            "gasUsed": self.gas_used,
            "cumulativeGasUsed": self.cumulative_gas_used,
            "effectiveGasPrice": self.effective_gas_price,
            "status": self.status,
            "contractAddress": self.contract_address,
            "from": self.from_address,
            "to": self.to_address,
            "logs": self.logs,
        }


@dataclass
class PollResult:
    """Snapshot of a transaction as seen by the node at poll time."""
    current_block_number: int
    tx_hash: str
    transaction_data: Optional[TransactionData] = None
    transaction_receipt: Optional[TransactionReceipt] = None

    @property
    def tx_block(self) -> int:
        if self.transaction_receipt is None:
            return -1
        return self.transaction_receipt.block_number

    @property
    def status(self) -> TransactionStatus:
        data = self.transaction_data
        receipt = self.transaction_receipt

        if data is None:
            # Never broadcast, evicted, or replaced by another tx at the same nonce.
            return TransactionStatus.UNKNOWN
        if receipt is None:
            return TransactionStatus.PENDING
        if receipt.succeeded:
            return TransactionStatus.CONFIRMED
        if data.gas_limit and Decimal(receipt.gas_used) / Decimal(data.gas_limit) > OUT_OF_GAS_RATIO:
            return TransactionStatus.OUT_OF_GAS
        return TransactionStatus.FAILED


@dataclass(frozen=True)
class CancellationRequest:
    """Same-nonce, zero-value self-transfer that outbids the original transaction."""
    sender_address: str
    target_nonce: int
    boosted_fee: Decimal                        # gwei

    @property
    def boosted_fee_wei(self) -> int:
        return gwei_to_wei(self.boosted_fee)


@dataclass
class PreparedTransaction:
    """A transaction ready to be signed and broadcast."""
    chain_id: int
    from_address: str
    to_address: str
    nonce: int
    gas_limit: int
    data: str = "0x"
    value: int = 0
    gas_price: Optional[int] = None             # legacy
    max_fee_per_gas: Optional[int] = None       # EIP-1559
    max_priority_fee_per_gas: Optional[int] = None
    description: str = ""

    @property
    def is_eip1559(self) -> bool:
        return self.max_fee_per_gas is not None

    def to_signable(self) -> Dict[str, Any]:
        """Convert to the dictionary shape eth-account signs."""
        tx: Dict[str, Any] = {
            "chainId": self.chain_id,
            "to": self.to_address,
            "nonce": self.nonce,
            "gas": self.gas_limit,
            "value": self.value,
            "data": self.data,
        }
        if self.is_eip1559:
            tx["maxFeePerGas"] = self.max_fee_per_gas
            tx["maxPriorityFeePerGas"] = self.max_priority_fee_per_gas or 0
        else:
            tx["gasPrice"] = self.gas_price or 0
        return tx


@dataclass
class SubmittedTransaction:
    """A transaction accepted by the node's mempool."""
    hash: str
    chain_id: int
    from_address: str
    to_address: str
    nonce: int
    gas_limit: int
    value: int = 0
    data: str = "0x"
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_prepared(cls, tx: PreparedTransaction, tx_hash: str) -> "SubmittedTransaction":
        return cls(
            hash=tx_hash,
            chain_id=tx.chain_id,
            from_address=tx.from_address,
            to_address=tx.to_address,
            nonce=tx.nonce,
            gas_limit=tx.gas_limit,
            value=tx.value,
            data=tx.data,
            gas_price=tx.gas_price,
            max_fee_per_gas=tx.max_fee_per_gas,
            max_priority_fee_per_gas=tx.max_priority_fee_per_gas,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "chainId": self.chain_id,
            "from": self.from_address,
            "to": self.to_address,
            "nonce": self.nonce,
            "gasLimit": str(self.gas_limit),
            "value": str(self.value),
            "data": self.data,
            "gasPrice": str(self.gas_price) if self.gas_price is not None else None,
            "maxFeePerGas": str(self.max_fee_per_gas) if self.max_fee_per_gas is not None else None,
            "maxPriorityFeePerGas": (
                str(self.max_priority_fee_per_gas) if self.max_priority_fee_per_gas is not None else None
            ),
        }


@dataclass(frozen=True)
class TokenInfo:
    chain_id: int
    address: str
    name: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class TokenValue:
    """Raw on-chain amount with the decimals needed to render it."""
    value: int
    decimals: int

    def to_decimal(self) -> Decimal:
        return Decimal(self.value).scaleb(-self.decimals)

    def __str__(self) -> str:
        return format(self.to_decimal().normalize(), "f")
