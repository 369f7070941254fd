import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field, StrictStr

from ..core.errors import OutOfGasError
from ..core.models import TransactionStatus
from .deps import TX_HASH_PATTERN, AddressRequest, NetworkRequest, get_connector, timestamp_ms


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/network")


class PollRequest(NetworkRequest):
    tx_hash: StrictStr = Field(alias="txHash", pattern=TX_HASH_PATTERN)


class PollResponse(BaseModel):
    network: str
    timestamp: int
    currentBlock: int
    txHash: str
    txStatus: int
    txState: str
    txBlock: int
    txData: Optional[Dict[str, Any]] = None
    txReceipt: Optional[Dict[str, Any]] = None


class BalanceRequest(AddressRequest):
    token_symbols: List[StrictStr] = Field(alias="tokenSymbols")


class BalanceResponse(BaseModel):
    network: str
    timestamp: int
    latency: float
    balances: Dict[str, str]


@router.post("/poll")
async def poll(req: PollRequest, request: Request) -> PollResponse:
    connector = await get_connector(request, req.chain, req.network)
    result = await connector.poll(req.tx_hash)
    status = result.status

    if status is TransactionStatus.OUT_OF_GAS:
        receipt = result.transaction_receipt
        logger.warning("Transaction %s ran out of gas", req.tx_hash)
        raise OutOfGasError(
            tx_hash=req.tx_hash,
            gas_used=receipt.gas_used,
            gas_limit=result.transaction_data.gas_limit,
        )

    return PollResponse(
        network=connector.network,
        timestamp=timestamp_ms(),
        currentBlock=result.current_block_number,
        txHash=req.tx_hash,
        txStatus=status.poll_code,
        txState=status.value,
        txBlock=result.tx_block,
        txData=result.transaction_data.to_dict() if result.transaction_data else None,
        txReceipt=result.transaction_receipt.to_dict() if result.transaction_receipt else None,
    )


@router.post("/balances")
async def balances(req: BalanceRequest, request: Request) -> BalanceResponse:
    start = time.perf_counter()
    connector = await get_connector(request, req.chain, req.network)

    result: Dict[str, str] = {}
    for symbol in req.token_symbols:
        if symbol.upper() == connector.native_token_symbol.upper():
            value = await connector.get_native_balance(req.address)
        else:
            token = connector.get_token_for_symbol(symbol)
            value = await connector.get_erc20_balance(token, req.address)
        result[symbol] = str(value)

    return BalanceResponse(
        network=connector.network,
        timestamp=timestamp_ms(),
        latency=round(time.perf_counter() - start, 3),
        balances=result,
    )


@router.get("/status")
async def network_status(
    request: Request,
    chain: str = Query(min_length=1),
    network: str = Query(min_length=1),
) -> Dict[str, Any]:
    connector = await get_connector(request, chain, network)
    estimate = connector.oracle.estimate
    return {
        "chain": connector.chain,
        "network": connector.network,
        "chainId": connector.chain_id,
        "rpcUrl": connector.node_url,
        "currentBlockNumber": await connector.get_current_block_number(),
        "nativeCurrency": connector.native_token_symbol,
        "gasPrice": str(estimate.value),
        "gasPriceSource": estimate.source,
        "gasPriceLastUpdated": estimate.last_updated.isoformat(),
    }
