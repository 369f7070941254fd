"""
Transaction builder for the transactions the gateway signs itself.
"""

from typing import Optional

from .models import PreparedTransaction


# Minimal ERC-20 ABI selectors
ERC20_APPROVE_SELECTOR = "0x095ea7b3"  # approve(address,uint256)
ERC20_BALANCE_OF_SELECTOR = "0x70a08231"  # balanceOf(address)
ERC20_ALLOWANCE_SELECTOR = "0xdd62ed3e"  # allowance(address,address)

# Maximum uint256 for unlimited approval
MAX_UINT256 = 2**256 - 1

# Intrinsic gas of a plain value transfer
SELF_TRANSFER_GAS_LIMIT = 21000


def _encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex string (without 0x prefix)."""
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"Value out of uint256 range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    """Encode an address as a 32-byte hex string (without 0x prefix)."""
    addr = address.lower().replace("0x", "")
    return addr.zfill(64)


def encode_balance_of(owner: str) -> str:
    return ERC20_BALANCE_OF_SELECTOR + _encode_address(owner)


def encode_allowance(owner: str, spender: str) -> str:
    return ERC20_ALLOWANCE_SELECTOR + _encode_address(owner) + _encode_address(spender)


def encode_approve(spender: str, amount: int) -> str:
    return ERC20_APPROVE_SELECTOR + _encode_address(spender) + _encode_uint256(amount)


def decode_uint256(result: Optional[str]) -> int:
    """Decode an ``eth_call`` uint256 return value; empty results read as 0."""
    if not result or result == "0x":
        return 0
    return int(result, 16)


class TransactionBuilder:
    """
    Builds transactions for the gateway.

    Handles:
    - ERC20 approvals
    - Same-nonce zero-value self transfers used to cancel pending transactions
    """

    @staticmethod
    def build_erc20_approve(
        chain_id: int,
        owner_address: str,
        token_address: str,
        spender_address: str,
        nonce: int,
        gas_limit: int,
        amount: int = MAX_UINT256,
        gas_price: Optional[int] = None,
        max_fee_per_gas: Optional[int] = None,
        max_priority_fee_per_gas: Optional[int] = None,
    ) -> PreparedTransaction:
        """
        Build an ERC20 approval transaction.

        Args:
            chain_id: The chain ID
            owner_address: The token owner (sender)
            token_address: The ERC20 token contract
            spender_address: The address being approved to spend
            nonce: Sender nonce to use
            gas_limit: Gas limit for the call
            amount: The amount to approve (default: unlimited)
            gas_price: Legacy gas price in wei
            max_fee_per_gas: EIP-1559 fee cap in wei (overrides gas_price)
            max_priority_fee_per_gas: EIP-1559 tip in wei

        Returns:
            PreparedTransaction ready to be signed
        """
        return PreparedTransaction(
            chain_id=chain_id,
            from_address=owner_address,
            to_address=token_address,
            nonce=nonce,
            gas_limit=gas_limit,
            data=encode_approve(spender_address, amount),
            value=0,
            gas_price=None if max_fee_per_gas is not None else gas_price,
            max_fee_per_gas=max_fee_per_gas,
            max_priority_fee_per_gas=max_priority_fee_per_gas if max_fee_per_gas is not None else None,
            description=f"Approve {spender_address[:10]}... to spend tokens",
        )

    @staticmethod
    def build_self_transfer(
        chain_id: int,
        address: str,
        nonce: int,
        gas_price: int,
    ) -> PreparedTransaction:
        """Zero-value transfer from ``address`` to itself at ``nonce``, priced with a legacy gasPrice."""
        return PreparedTransaction(
            chain_id=chain_id,
            from_address=address,
            to_address=address,
            nonce=nonce,
            gas_limit=SELF_TRANSFER_GAS_LIMIT,
            data="0x",
            value=0,
            gas_price=gas_price,
            description=f"Cancel nonce {nonce}",
        )
