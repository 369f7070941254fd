"""
Thin async JSON-RPC client for an EVM node.

Only the calls the gateway needs are wrapped. Every outbound request is
announced to registered listeners as ``{"action": "request", ...}`` so
connectors can count node traffic.
"""

import itertools
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..core.models import TransactionData, TransactionReceipt


logger = logging.getLogger(__name__)

RequestListener = Callable[[Dict[str, Any]], None]


class RpcError(Exception):
    """Node or transport failure with a machine-readable code."""

    def __init__(self, message: str, code: Any = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class ChainRpcClient:
    """
    JSON-RPC client bound to one node endpoint.

    ``supports_priority_fee`` is a capability flag: nodes that do not serve
    ``eth_maxPriorityFeePerGas`` leave it unset and callers treat the priority
    fee as zero.
    """

    def __init__(
        self,
        node_url: str,
        *,
        chain_id: int,
        supports_priority_fee: bool = False,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.node_url = node_url
        self.chain_id = chain_id
        self.supports_priority_fee = supports_priority_fee
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)
        self._listeners: List[RequestListener] = []

    def on_request(self, listener: RequestListener) -> None:
        self._listeners.append(listener)

    def _emit(self, message: Dict[str, Any]) -> None:
        for listener in self._listeners:
            listener(message)

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """Make an RPC call to the node."""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }
        self._emit({"action": "request", "method": method, "id": payload["id"]})

        try:
            response = await self._client.post(self.node_url, json=payload)
        except httpx.TimeoutException as exc:
            raise RpcError(f"{method} timed out: {exc}", code="TIMEOUT") from exc
        except httpx.TransportError as exc:
            raise RpcError(f"{method} failed: {exc}", code="NETWORK_ERROR") from exc

        if response.status_code >= 400:
            raise RpcError(
                f"{method} returned HTTP {response.status_code}",
                code=response.status_code,
                data=response.text,
            )

        result = response.json()
        if "error" in result and result["error"] is not None:
            error = result["error"]
            raise RpcError(
                error.get("message", "RPC error"),
                code=error.get("code"),
                data=error.get("data"),
            )

        return result.get("result")

    async def get_block_number(self) -> int:
        return int(await self._rpc_call("eth_blockNumber", []), 16)

    async def get_fee_base(self) -> Optional[int]:
        """Current gas price in wei as reported by the node."""
        result = await self._rpc_call("eth_gasPrice", [])
        return int(result, 16) if result is not None else None

    async def get_priority_fee(self) -> Optional[int]:
        """Suggested priority fee in wei, or None on networks without one."""
        if not self.supports_priority_fee:
            return None
        result = await self._rpc_call("eth_maxPriorityFeePerGas", [])
        return int(result, 16) if result is not None else None

    async def get_transaction(self, tx_hash: str) -> Optional[TransactionData]:
        result = await self._rpc_call("eth_getTransactionByHash", [tx_hash])
        return TransactionData.from_rpc(result) if result else None

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        result = await self._rpc_call("eth_getTransactionReceipt", [tx_hash])
        return TransactionReceipt.from_rpc(result) if result else None

    async def send_raw_transaction(self, raw_tx: str) -> str:
        tx_hash = await self._rpc_call("eth_sendRawTransaction", [raw_tx])
        logger.info("Transaction submitted: %s", tx_hash)
        return tx_hash

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return int(await self._rpc_call("eth_getTransactionCount", [address, block]), 16)

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return int(await self._rpc_call("eth_getBalance", [address, block]), 16)

    async def call(self, to: str, data: str, block: str = "latest") -> str:
        return await self._rpc_call("eth_call", [{"to": to, "data": data}, block])

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
