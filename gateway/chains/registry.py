"""
Connector registry.

One registry per chain, owned by the application. It holds at most one live
``NetworkConnector`` per network name.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Optional

from ..config import ConnectorConfig, Settings, load_connector_config
from .connector import NetworkConnector
from .wallet import WalletStore


logger = logging.getLogger(__name__)

ConnectorFactory = Callable[[ConnectorConfig], NetworkConnector]


class ConnectorRegistry:
    def __init__(
        self,
        chain: str,
        settings: Settings,
        wallets: Optional[WalletStore] = None,
        *,
        conf_dir: Optional[Path] = None,
        factory: Optional[ConnectorFactory] = None,
    ):
        self.chain = chain
        self._settings = settings
        self._wallets = wallets or WalletStore()
        self._conf_dir = conf_dir or settings.conf_dir
        self._factory = factory or self._build_connector
        self._instances: Dict[str, NetworkConnector] = {}

    def _build_connector(self, config: ConnectorConfig) -> NetworkConnector:
        return NetworkConnector(
            config,
            wallets=self._wallets,
            metrics_log_interval=self._settings.metrics_log_interval_seconds,
            request_timeout=self._settings.request_timeout_seconds,
        )

    def get_instance(self, network: str) -> NetworkConnector:
        """
        Return the connector for ``network``, creating and starting it on first use.

        Must be called from a running event loop.
        """
        connector = self._instances.get(network)
        if connector is not None:
            return connector

        config = load_connector_config(self.chain, network, self._conf_dir)
        connector = self._factory(config)
        self._instances[network] = connector
        connector.start()
        logger.info("Connected %s/%s (chain id %s)", self.chain, network, connector.chain_id)
        return connector

    def connected_instances(self) -> Dict[str, NetworkConnector]:
        return dict(self._instances)

    async def close(self, network: str) -> bool:
        """Remove and shut down the connector for ``network``. False when none is registered."""
        connector = self._instances.pop(network, None)
        if connector is None:
            return False
        await connector.close()
        logger.info("Closed %s/%s", self.chain, network)
        return True

    async def close_all(self) -> None:
        for network in list(self._instances):
            await self.close(network)
