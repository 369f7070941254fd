"""
Gateway core

Chain-agnostic transaction machinery:
- GasPriceOracle: periodically refreshed fee estimate
- TransactionTracker: poll engine that classifies a transaction hash
- TransactionCanceller: same-nonce replacement with a boosted fee
- TransactionBuilder: approval and self-transfer transactions

Usage:
    from gateway.core import GasPriceOracle, TransactionTracker

    oracle = GasPriceOracle(rpc, manual_gas_price=Decimal("110"), refresh_interval=60)
    oracle.start()
    fee = oracle.current_fee()

    result = await TransactionTracker(rpc).poll(tx_hash)
    result.status
"""

from .cancellation import TransactionCanceller
from .errors import (
    ErrorCategory,
    ExecutionFailureError,
    GatewayError,
    InvalidParameterError,
    OutOfGasError,
    RateLimitError,
    TokenNotSupportedError,
    TransientNetworkError,
    UnknownError,
    UnsupportedNetworkError,
    WalletNotFoundError,
    classify_rpc_error,
)
from .gas_oracle import GasPriceOracle
from .models import (
    CancellationRequest,
    FeeEstimate,
    PollResult,
    PreparedTransaction,
    SubmittedTransaction,
    TokenInfo,
    TokenValue,
    TransactionData,
    TransactionReceipt,
    TransactionStatus,
)
from .tracker import TransactionTracker, classify
from .tx_builder import TransactionBuilder

__all__ = [
    # Collaborators
    "GasPriceOracle",
    "TransactionTracker",
    "TransactionCanceller",
    "TransactionBuilder",
    "classify",
    # Models
    "CancellationRequest",
    "FeeEstimate",
    "PollResult",
    "PreparedTransaction",
    "SubmittedTransaction",
    "TokenInfo",
    "TokenValue",
    "TransactionData",
    "TransactionReceipt",
    "TransactionStatus",
    # Errors
    "ErrorCategory",
    "GatewayError",
    "TransientNetworkError",
    "RateLimitError",
    "ExecutionFailureError",
    "OutOfGasError",
    "WalletNotFoundError",
    "TokenNotSupportedError",
    "UnsupportedNetworkError",
    "InvalidParameterError",
    "UnknownError",
    "classify_rpc_error",
]
