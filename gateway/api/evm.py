from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field, StrictInt, StrictStr

from .deps import AddressRequest, get_connector


router = APIRouter(prefix="/evm")


class NonceResponse(BaseModel):
    nonce: int


class CancelRequest(AddressRequest):
    nonce: StrictInt = Field(ge=0)


class CancelResponse(BaseModel):
    txHash: str


class AllowancesRequest(AddressRequest):
    spender: StrictStr = Field(min_length=1, description="Spender name or address")
    token_symbols: List[StrictStr] = Field(alias="tokenSymbols")


class AllowancesResponse(BaseModel):
    spender: str
    approvals: Dict[str, str]


class ApproveRequest(AddressRequest):
    spender: StrictStr = Field(min_length=1)
    token: StrictStr = Field(min_length=1, description="Token symbol")
    amount: Optional[StrictStr] = Field(
        default=None, pattern=r"^\d+(\.\d+)?$", description="Decimal amount; unlimited when omitted"
    )
    nonce: Optional[StrictInt] = Field(default=None, ge=0)
    max_fee_per_gas: Optional[StrictStr] = Field(default=None, alias="maxFeePerGas", pattern=r"^\d+$")
    max_priority_fee_per_gas: Optional[StrictStr] = Field(
        default=None, alias="maxPriorityFeePerGas", pattern=r"^\d+$"
    )


@router.post("/nonce")
async def nonce(req: AddressRequest, request: Request) -> NonceResponse:
    connector = await get_connector(request, req.chain, req.network)
    connector.get_wallet(req.address)
    return NonceResponse(nonce=await connector.nonce_manager.get_nonce(req.address))


@router.post("/nextNonce")
async def next_nonce(req: AddressRequest, request: Request) -> NonceResponse:
    connector = await get_connector(request, req.chain, req.network)
    connector.get_wallet(req.address)
    return NonceResponse(nonce=await connector.nonce_manager.get_next_nonce(req.address))


@router.post("/cancel")
async def cancel(req: CancelRequest, request: Request) -> CancelResponse:
    connector = await get_connector(request, req.chain, req.network)
    signer = connector.get_wallet(req.address)
    submitted = await connector.cancel_tx(signer, req.nonce)
    return CancelResponse(txHash=submitted.hash)


@router.post("/allowances")
async def allowances(req: AllowancesRequest, request: Request) -> AllowancesResponse:
    connector = await get_connector(request, req.chain, req.network)
    spender = connector.get_spender(req.spender)

    approvals: Dict[str, str] = {}
    for symbol in req.token_symbols:
        token = connector.get_token_for_symbol(symbol)
        approvals[symbol] = str(await connector.get_erc20_allowance(token, req.address, spender))

    return AllowancesResponse(spender=spender, approvals=approvals)


@router.post("/approve")
async def approve(req: ApproveRequest, request: Request) -> Dict[str, Any]:
    connector = await get_connector(request, req.chain, req.network)
    signer = connector.get_wallet(req.address)
    spender = connector.get_spender(req.spender)
    token = connector.get_token_for_symbol(req.token)

    amount = int(Decimal(req.amount).scaleb(token.decimals)) if req.amount is not None else None

    submitted = await connector.approve_erc20(
        signer,
        spender,
        token,
        amount=amount,
        nonce=req.nonce,
        max_fee_per_gas=int(req.max_fee_per_gas) if req.max_fee_per_gas is not None else None,
        max_priority_fee_per_gas=(
            int(req.max_priority_fee_per_gas) if req.max_priority_fee_per_gas is not None else None
        ),
    )
    return {
        "tokenAddress": token.address,
        "spender": spender,
        "amount": req.amount if req.amount is not None else "unlimited",
        "nonce": submitted.nonce,
        "approval": submitted.to_dict(),
    }
