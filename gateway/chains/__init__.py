"""
Chain access: JSON-RPC client, nonce tracking, signers, token lists and the
per-network connector with its registry.
"""

from .connector import NetworkConnector
from .nonce_manager import NonceManager
from .registry import ConnectorRegistry
from .rpc import ChainRpcClient, RpcError
from .tokens import TokenList
from .wallet import LocalAccountSigner, WalletStore

__all__ = [
    "ChainRpcClient",
    "ConnectorRegistry",
    "LocalAccountSigner",
    "NetworkConnector",
    "NonceManager",
    "RpcError",
    "TokenList",
    "WalletStore",
]
