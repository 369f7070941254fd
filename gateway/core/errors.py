"""
Error Classification

Defines the error taxonomy surfaced by the gateway core. Every error carries a
stable machine-readable code and the HTTP-equivalent status the REST layer
should answer with, so callers can pick a backoff policy without parsing
messages.
"""

from enum import Enum
from typing import Any, Dict, Optional

import httpx


NETWORK_ERROR_CODE = 1001
RATE_LIMIT_ERROR_CODE = 1002
OUT_OF_GAS_ERROR_CODE = 1003
LOAD_WALLET_ERROR_CODE = 1005
TOKEN_NOT_SUPPORTED_ERROR_CODE = 1006
TRANSACTION_FAILED_ERROR_CODE = 1008
UNSUPPORTED_NETWORK_ERROR_CODE = 1009
UNKNOWN_ERROR_ERROR_CODE = 1099

NETWORK_ERROR_MESSAGE = "Network error. Please check your node URL, API key, and Internet connection."
RATE_LIMIT_ERROR_MESSAGE = "Blockchain node API rate limit exceeded."
OUT_OF_GAS_ERROR_MESSAGE = "Transaction out of gas."
LOAD_WALLET_ERROR_MESSAGE = "Failed to load wallet: "
TOKEN_NOT_SUPPORTED_ERROR_MESSAGE = "Token not supported: "
TRANSACTION_FAILED_ERROR_MESSAGE = "Transaction was mined but reverted."
UNKNOWN_ERROR_MESSAGE = "Unknown error."

# JSON-RPC code used by Infura-style nodes for request throttling.
RPC_RATE_LIMIT_CODE = -32005
RPC_NETWORK_ERROR_CODES = {"NETWORK_ERROR", "TIMEOUT"}


class ErrorCategory(str, Enum):
    """Categories of errors for retry decisions."""

    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    EXECUTION_FAILURE = "execution_failure"
    WALLET = "wallet"
    TOKEN = "token"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class GatewayError(Exception):
    """Base class for classified gateway errors."""

    code: int = UNKNOWN_ERROR_ERROR_CODE
    http_status: int = 500
    category: ErrorCategory = ErrorCategory.UNKNOWN
    default_message: str = UNKNOWN_ERROR_MESSAGE
    retryable: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        reason: Optional[str] = None,
        retry_after: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.reason = reason
        self.retry_after = retry_after
        self.details = details or {}

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "message": self.message,
            "httpErrorCode": self.http_status,
            "errorCode": self.code,
        }
        if self.reason:
            body["reason"] = self.reason
        if self.retry_after is not None:
            body["retryAfter"] = self.retry_after
        return body


class TransientNetworkError(GatewayError):
    """Connectivity loss. Retry with backoff."""

    code = NETWORK_ERROR_CODE
    http_status = 503
    category = ErrorCategory.NETWORK
    default_message = NETWORK_ERROR_MESSAGE
    retryable = True

    def __init__(self, message: Optional[str] = None, *, reason: Optional[str] = None):
        super().__init__(message, reason=reason, retry_after=5.0)


class RateLimitError(GatewayError):
    """Node-imposed throttling. Back off longer than for a network error."""

    code = RATE_LIMIT_ERROR_CODE
    http_status = 503
    category = ErrorCategory.RATE_LIMIT
    default_message = RATE_LIMIT_ERROR_MESSAGE
    retryable = True

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        reason: Optional[str] = None,
        retry_after: float = 60.0,
    ):
        super().__init__(message, reason=reason, retry_after=retry_after)


class ExecutionFailureError(GatewayError):
    """Transaction mined but reverted. Terminal."""

    code = TRANSACTION_FAILED_ERROR_CODE
    http_status = 503
    category = ErrorCategory.EXECUTION_FAILURE
    default_message = TRANSACTION_FAILED_ERROR_MESSAGE

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        tx_hash: Optional[str] = None,
        gas_used: Optional[int] = None,
        gas_limit: Optional[int] = None,
    ):
        super().__init__(
            message,
            details={"txHash": tx_hash, "gasUsed": gas_used, "gasLimit": gas_limit},
        )
        self.tx_hash = tx_hash


class OutOfGasError(ExecutionFailureError):
    """Transaction mined but ran out of gas."""

    code = OUT_OF_GAS_ERROR_CODE
    default_message = OUT_OF_GAS_ERROR_MESSAGE


class WalletNotFoundError(GatewayError):
    code = LOAD_WALLET_ERROR_CODE
    category = ErrorCategory.WALLET
    default_message = LOAD_WALLET_ERROR_MESSAGE

    def __init__(self, address: str):
        super().__init__(LOAD_WALLET_ERROR_MESSAGE + address)
        self.address = address


class TokenNotSupportedError(GatewayError):
    code = TOKEN_NOT_SUPPORTED_ERROR_CODE
    category = ErrorCategory.TOKEN
    default_message = TOKEN_NOT_SUPPORTED_ERROR_MESSAGE

    def __init__(self, symbol: str):
        super().__init__(TOKEN_NOT_SUPPORTED_ERROR_MESSAGE + symbol)
        self.symbol = symbol


class UnsupportedNetworkError(GatewayError):
    code = UNSUPPORTED_NETWORK_ERROR_CODE
    http_status = 404
    category = ErrorCategory.CONFIGURATION
    default_message = "Network not supported."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        chain: Optional[str] = None,
        network: Optional[str] = None,
    ):
        super().__init__(message, details={"chain": chain, "network": network})


class InvalidParameterError(GatewayError):
    """A request value that only turns out invalid after lookup, e.g. an unknown spender name."""

    http_status = 404
    category = ErrorCategory.CONFIGURATION
    default_message = "Invalid parameters"

    def to_response(self) -> Dict[str, Any]:
        # Same shape as request validation failures
        return {"message": self.message, "httpErrorCode": self.http_status}


class UnknownError(GatewayError):
    """Unrecognized failure shape. Not retried by default."""

    http_status = 503


def _retry_after_from(data: Any) -> float:
    if isinstance(data, dict):
        backoff = data.get("backoff_seconds")
        if isinstance(backoff, (int, float)) and backoff > 0:
            return float(backoff)
    return 60.0


def classify_rpc_error(error: BaseException) -> GatewayError:
    """
    Map an exception raised while talking to the node onto the taxonomy.

    Classification looks at the error's ``code`` attribute (JSON-RPC code,
    HTTP status or ``"NETWORK_ERROR"``) and at httpx transport errors; the
    message text is never inspected.
    """
    if isinstance(error, GatewayError):
        return error

    reason = str(error) or error.__class__.__name__
    code = getattr(error, "code", None)

    if isinstance(error, httpx.TransportError) or code in RPC_NETWORK_ERROR_CODES:
        return TransientNetworkError(reason=reason)

    if isinstance(error, httpx.HTTPStatusError):
        code = error.response.status_code

    if code == RPC_RATE_LIMIT_CODE or code == 429:
        return RateLimitError(
            reason=reason,
            retry_after=_retry_after_from(getattr(error, "data", None)),
        )

    return UnknownError(reason=reason)
