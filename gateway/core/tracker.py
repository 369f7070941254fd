"""
Transaction poll engine.

Reconciles a submitted transaction hash against the node's view of the chain.
Nothing is cached between polls: every call reflects the node state at the
moment of its own RPC calls.
"""

import logging
from typing import Protocol, Optional

from .errors import classify_rpc_error
from .models import (
    OUT_OF_GAS_RATIO,
    PollResult,
    TransactionData,
    TransactionReceipt,
    TransactionStatus,
)


logger = logging.getLogger(__name__)

__all__ = ["OUT_OF_GAS_RATIO", "TransactionTracker", "classify"]


class ChainReader(Protocol):
    async def get_block_number(self) -> int: ...

    async def get_transaction(self, tx_hash: str) -> Optional[TransactionData]: ...

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]: ...


def classify(result: PollResult) -> TransactionStatus:
    """Classify a poll snapshot (see ``PollResult.status``)."""
    return result.status


class TransactionTracker:
    """Stateless poll engine bound to one network's RPC client."""

    def __init__(self, rpc: ChainReader):
        self._rpc = rpc

    async def get_current_block_number(self) -> int:
        try:
            return await self._rpc.get_block_number()
        except Exception as exc:
            raise classify_rpc_error(exc) from exc

    async def poll(self, tx_hash: str) -> PollResult:
        try:
            current_block = await self._rpc.get_block_number()
            transaction_data = await self._rpc.get_transaction(tx_hash)
            transaction_receipt = None
            if transaction_data is not None:
                transaction_receipt = await self._rpc.get_transaction_receipt(tx_hash)
        except Exception as exc:
            error = classify_rpc_error(exc)
            logger.warning("Poll of %s failed: %s (%s)", tx_hash, error.message, error.reason)
            raise error from exc

        return PollResult(
            current_block_number=current_block,
            tx_hash=tx_hash,
            transaction_data=transaction_data,
            transaction_receipt=transaction_receipt,
        )
