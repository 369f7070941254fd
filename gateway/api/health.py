from typing import Any, Dict

from fastapi import APIRouter, Request

from .deps import get_registries

router = APIRouter()


@router.get("/healthz")
async def health_check(request: Request) -> Dict[str, Any]:
    """Health check listing connected networks and the freshness of their gas price"""

    networks: Dict[str, Dict[str, Any]] = {}
    for chain, registry in get_registries(request).items():
        for name, connector in registry.connected_instances().items():
            oracle = connector.oracle
            estimate = oracle.estimate
            networks[f"{chain}/{name}"] = {
                "chainId": connector.chain_id,
                "ready": connector.ready(),
                "gasPrice": str(estimate.value),
                "gasPriceSource": estimate.source,
                "gasPriceLastUpdated": estimate.last_updated.isoformat(),
                "gasPriceRefreshing": oracle.is_running,
                "refreshFailures": oracle.refresh_failures,
                "lastRefreshError": oracle.last_refresh_error,
            }

    # A network whose latest refresh failed is serving a stale price
    degraded = any(entry["lastRefreshError"] for entry in networks.values())

    return {
        "status": "degraded" if degraded else "healthy",
        "networks": networks,
        "connected_networks": len(networks),
    }
