"""
Transaction cancellation by same-nonce replacement.

A pending transaction cannot be recalled. Instead a zero-value transfer from
the sender to itself is broadcast at the same nonce with a boosted fee, so
miners prefer it and the original is dropped from the mempool.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Protocol

from .errors import classify_rpc_error
from .gas_oracle import GasPriceOracle
from .models import CancellationRequest, SubmittedTransaction
from .tx_builder import TransactionBuilder


logger = logging.getLogger(__name__)

CANCEL_FEE_MULTIPLIER = 2


class Signer(Protocol):
    address: str

    def sign_transaction(self, tx: Dict[str, Any]) -> str: ...


class RawTransactionSender(Protocol):
    async def send_raw_transaction(self, raw_tx: str) -> str: ...


class TransactionCanceller:
    def __init__(self, rpc: RawTransactionSender, oracle: GasPriceOracle, *, chain_id: int):
        self._rpc = rpc
        self._oracle = oracle
        self._chain_id = chain_id

    def build_request(self, address: str, nonce: int) -> CancellationRequest:
        if nonce < 0:
            raise ValueError(f"Nonce must be non-negative, got {nonce}")
        boosted_fee = self._oracle.current_fee() * CANCEL_FEE_MULTIPLIER
        return CancellationRequest(
            sender_address=address,
            target_nonce=nonce,
            boosted_fee=Decimal(boosted_fee),
        )

    async def cancel(self, signer: Signer, nonce: int) -> SubmittedTransaction:
        """Replace whatever is pending at ``nonce`` for the signer's address."""
        logger.info("Canceling any existing transaction(s) with nonce number %s.", nonce)
        request = self.build_request(signer.address, nonce)
        return await self.cancel_with_gas_price(signer, request)

    async def cancel_with_gas_price(
        self,
        signer: Signer,
        request: CancellationRequest,
    ) -> SubmittedTransaction:
        tx = TransactionBuilder.build_self_transfer(
            chain_id=self._chain_id,
            address=request.sender_address,
            nonce=request.target_nonce,
            gas_price=request.boosted_fee_wei,
        )
        raw_tx = signer.sign_transaction(tx.to_signable())
        try:
            tx_hash = await self._rpc.send_raw_transaction(raw_tx)
        except Exception as exc:
            error = classify_rpc_error(exc)
            logger.warning(
                "Cancellation of nonce %s for %s rejected: %s (%s)",
                request.target_nonce,
                request.sender_address,
                error.message,
                error.reason,
            )
            raise error from exc
        return SubmittedTransaction.from_prepared(tx, tx_hash)
