"""
Per-network connector.

Wires the RPC client, gas price oracle, poll engine, nonce manager and
canceller for one chain/network pair and exposes the chain-agnostic
operations the REST layer calls.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from eth_utils import is_hex_address

from ..config import ConnectorConfig
from ..core.cancellation import Signer, TransactionCanceller
from ..core.errors import InvalidParameterError, TokenNotSupportedError, classify_rpc_error
from ..core.gas_oracle import GasPriceOracle
from ..core.models import (
    PollResult,
    SubmittedTransaction,
    TokenInfo,
    TokenValue,
    gwei_to_wei,
)
from ..core.tracker import TransactionTracker
from ..core.tx_builder import (
    MAX_UINT256,
    TransactionBuilder,
    decode_uint256,
    encode_allowance,
    encode_balance_of,
)
from .nonce_manager import NonceManager
from .rpc import ChainRpcClient
from .tokens import TokenList
from .wallet import WalletStore


logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18


class NetworkConnector:
    """Everything the gateway knows about one network."""

    def __init__(
        self,
        config: ConnectorConfig,
        *,
        wallets: Optional[WalletStore] = None,
        rpc: Optional[ChainRpcClient] = None,
        metrics_log_interval: float = 300,
        request_timeout: float = 30.0,
    ):
        network = config.network
        self._config = config
        self._wallets = wallets or WalletStore()
        self.rpc = rpc or ChainRpcClient(
            network.node_url,
            chain_id=network.chain_id,
            supports_priority_fee=network.supports_priority_fee,
            timeout=request_timeout,
        )
        self.oracle = GasPriceOracle(
            self.rpc,
            manual_gas_price=config.manual_gas_price,
            refresh_interval=network.gas_price_refresh_interval,
            name=f"{config.chain}/{network.name}",
        )
        self.tracker = TransactionTracker(self.rpc)
        self.nonce_manager = NonceManager(self.rpc, network.chain_id)
        self.canceller = TransactionCanceller(self.rpc, self.oracle, chain_id=network.chain_id)

        self._metrics_log_interval = metrics_log_interval
        self._request_count = 0
        self._metrics_task: Optional[asyncio.Task] = None
        self._tokens = TokenList()
        self._ready = False
        self._init_lock = asyncio.Lock()

        self.rpc.on_request(self.request_counter)

    # Identity

    @property
    def chain(self) -> str:
        return self._config.chain

    @property
    def network(self) -> str:
        return self._config.network.name

    @property
    def chain_id(self) -> int:
        return self._config.network.chain_id

    @property
    def node_url(self) -> str:
        return self._config.network.node_url

    @property
    def native_token_symbol(self) -> str:
        return self._config.network.native_currency_symbol

    @property
    def gas_limit_transaction(self) -> int:
        return self._config.gas_limit_transaction

    # Lifecycle

    def start(self) -> None:
        """Start the gas price refresh loop and the metrics logger."""
        self.oracle.start()
        if self._metrics_task is None or self._metrics_task.done():
            self._metrics_task = asyncio.get_running_loop().create_task(
                self._metrics_loop(), name=f"rpc-metrics-{self.chain}-{self.network}"
            )

    async def init(self) -> None:
        """Load the token list once; concurrent callers wait for the first load."""
        async with self._init_lock:
            if self._ready:
                return
            network = self._config.network
            self._tokens = await TokenList.load(
                network.token_list_type,
                network.token_list_source,
                chain_id=network.chain_id,
            )
            self._ready = True

    def ready(self) -> bool:
        return self._ready

    async def close(self) -> None:
        await self.oracle.stop()
        if self._metrics_task is not None:
            task, self._metrics_task = self._metrics_task, None
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.rpc.close()
        self._ready = False

    # Request metrics

    def request_counter(self, message: Dict[str, Any]) -> None:
        if message.get("action") == "request":
            self._request_count += 1

    @property
    def request_count(self) -> int:
        return self._request_count

    @property
    def metrics_log_interval(self) -> float:
        return self._metrics_log_interval

    def metric_logger(self) -> None:
        logger.info(
            "%s request(s) sent in last %s seconds.",
            self._request_count,
            self._metrics_log_interval,
        )
        self._request_count = 0

    async def _metrics_loop(self) -> None:
        while True:
            await asyncio.sleep(self._metrics_log_interval)
            self.metric_logger()

    # Gas price

    @property
    def gas_price(self) -> Decimal:
        return self.oracle.current_fee()

    def current_fee(self) -> Decimal:
        return self.oracle.current_fee()

    # Poll and cancel

    async def get_current_block_number(self) -> int:
        return await self.tracker.get_current_block_number()

    async def poll(self, tx_hash: str) -> PollResult:
        return await self.tracker.poll(tx_hash)

    async def cancel_tx(self, signer: Signer, nonce: int) -> SubmittedTransaction:
        submitted = await self.canceller.cancel(signer, nonce)
        await self.nonce_manager.commit_nonce(signer.address, nonce)
        return submitted

    # Wallets, spenders and tokens

    def get_wallet(self, address: str):
        return self._wallets.get(address)

    def get_spender(self, spender: str) -> str:
        """Resolve a configured spender name (e.g. a DEX router) to its address."""
        resolved = self._config.network.spenders.get(spender, spender)
        if not is_hex_address(resolved):
            raise InvalidParameterError(
                f"Spender {spender!r} is neither an address nor configured for {self.chain}/{self.network}"
            )
        return resolved

    def get_token_by_symbol(self, symbol: str) -> Optional[TokenInfo]:
        return self._tokens.by_symbol(symbol)

    def get_token_for_symbol(self, symbol: str) -> TokenInfo:
        token = self.get_token_by_symbol(symbol)
        if token is None:
            raise TokenNotSupportedError(symbol)
        return token

    @property
    def stored_token_list(self) -> list[TokenInfo]:
        return self._tokens.tokens

    # Balances and allowances

    async def get_native_balance(self, address: str) -> TokenValue:
        try:
            balance = await self.rpc.get_balance(address)
        except Exception as exc:
            raise classify_rpc_error(exc) from exc
        return TokenValue(value=balance, decimals=NATIVE_DECIMALS)

    async def get_erc20_balance(self, token: TokenInfo, address: str) -> TokenValue:
        try:
            result = await self.rpc.call(token.address, encode_balance_of(address))
        except Exception as exc:
            raise classify_rpc_error(exc) from exc
        return TokenValue(value=decode_uint256(result), decimals=token.decimals)

    async def get_erc20_allowance(self, token: TokenInfo, owner: str, spender: str) -> TokenValue:
        try:
            result = await self.rpc.call(token.address, encode_allowance(owner, spender))
        except Exception as exc:
            raise classify_rpc_error(exc) from exc
        return TokenValue(value=decode_uint256(result), decimals=token.decimals)

    async def approve_erc20(
        self,
        signer: Signer,
        spender: str,
        token: TokenInfo,
        amount: Optional[int] = None,
        nonce: Optional[int] = None,
        max_fee_per_gas: Optional[int] = None,
        max_priority_fee_per_gas: Optional[int] = None,
    ) -> SubmittedTransaction:
        """
        Approve ``spender`` to move ``amount`` (raw units, default unlimited) of ``token``.

        Uses EIP-1559 fees when ``max_fee_per_gas`` is given, otherwise the
        oracle's current gas price as a legacy gasPrice.
        """
        allocated = nonce is None
        if allocated:
            nonce = await self.nonce_manager.get_next_nonce(signer.address)

        try:
            tx = TransactionBuilder.build_erc20_approve(
                chain_id=self.chain_id,
                owner_address=signer.address,
                token_address=token.address,
                spender_address=spender,
                nonce=nonce,
                gas_limit=self.gas_limit_transaction,
                amount=MAX_UINT256 if amount is None else amount,
                gas_price=gwei_to_wei(self.oracle.current_fee()),
                max_fee_per_gas=max_fee_per_gas,
                max_priority_fee_per_gas=max_priority_fee_per_gas,
            )
            raw_tx = signer.sign_transaction(tx.to_signable())
            tx_hash = await self.rpc.send_raw_transaction(raw_tx)
        except Exception as exc:
            if allocated:
                await self.nonce_manager.release_nonce(signer.address, nonce)
            raise classify_rpc_error(exc) from exc

        if not allocated:
            await self.nonce_manager.commit_nonce(signer.address, nonce)

        logger.info("Approved %s for %s on %s/%s: %s", spender, token.symbol, self.chain, self.network, tx_hash)
        return SubmittedTransaction.from_prepared(tx, tx_hash)

    def __repr__(self) -> str:
        return f"NetworkConnector({self.chain}/{self.network}, chain_id={self.chain_id})"
