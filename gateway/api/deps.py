"""
Shared request models and connector lookup for the API routers.
"""

from datetime import datetime, timezone
from typing import Dict

from fastapi import Request
from pydantic import BaseModel, Field, StrictStr

from ..chains.connector import NetworkConnector
from ..chains.registry import ConnectorRegistry
from ..core.errors import UnsupportedNetworkError


ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
TX_HASH_PATTERN = r"^0x[a-fA-F0-9]{64}$"


class NetworkRequest(BaseModel):
    chain: StrictStr = Field(min_length=1, description="Chain name, e.g. energi")
    network: StrictStr = Field(min_length=1, description="Network name, e.g. mainnet")


class AddressRequest(NetworkRequest):
    address: StrictStr = Field(pattern=ADDRESS_PATTERN, description="Wallet address")


def timestamp_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def get_registries(request: Request) -> Dict[str, ConnectorRegistry]:
    return request.app.state.registries


async def get_connector(request: Request, chain: str, network: str) -> NetworkConnector:
    """Return a ready connector for ``chain``/``network``, initializing it on first use."""
    registry = get_registries(request).get(chain)
    if registry is None:
        raise UnsupportedNetworkError(f"Chain {chain!r} is not enabled", chain=chain, network=network)
    connector = registry.get_instance(network)
    if not connector.ready():
        await connector.init()
    return connector
