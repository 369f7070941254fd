from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.errors import UnsupportedNetworkError


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=15888, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", pattern="^(json|console)$", description="Log renderer: json or console")

    # Chain configuration
    conf_dir: Path = Field(default=BASE_DIR / "conf", description="Directory holding <chain>.yml files")
    chains: List[str] = Field(default_factory=lambda: ["energi"], description="Enabled chain names")

    # RPC
    request_timeout_seconds: int = Field(default=30, description="Node RPC request timeout")
    metrics_log_interval_seconds: int = Field(
        default=300,
        ge=1,
        description="How often each connector logs and resets its RPC request counter",
    )

    # Wallets
    wallet_private_keys: List[str] = Field(
        default_factory=list,
        description="Hex private keys the gateway may sign with (JSON list in env)",
    )

    @property
    def has_wallets(self) -> bool:
        return bool(self.wallet_private_keys)


class NetworkConfig(BaseModel):
    """One entry under ``networks:`` in a chain YAML file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    chain_id: int = Field(alias="chainID")
    node_url: str = Field(alias="nodeURL")
    token_list_type: str = Field(default="FILE", alias="tokenListType")
    token_list_source: Optional[str] = Field(default=None, alias="tokenListSource")
    native_currency_symbol: str = Field(alias="nativeCurrencySymbol")
    gas_price_refresh_interval: Optional[float] = Field(default=None, alias="gasPriceRefreshInterval")
    supports_priority_fee: bool = Field(default=False, alias="supportsPriorityFee")
    spenders: Dict[str, str] = Field(default_factory=dict)


class ChainConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    networks: Dict[str, NetworkConfig]
    manual_gas_price: Decimal = Field(alias="manualGasPrice", ge=0)
    gas_limit_transaction: int = Field(alias="gasLimitTransaction", gt=0)


class ConnectorConfig(BaseModel):
    """Everything a NetworkConnector needs, flattened for one chain/network pair."""

    chain: str
    network: NetworkConfig
    manual_gas_price: Decimal
    gas_limit_transaction: int


@lru_cache(maxsize=32)
def _read_chain_file(path: Path) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_chain_config(chain: str, conf_dir: Optional[Path] = None) -> ChainConfig:
    path = (conf_dir or settings.conf_dir) / f"{chain}.yml"
    if not path.exists():
        raise UnsupportedNetworkError(f"Chain {chain!r} is not configured", chain=chain)
    try:
        return ChainConfig.model_validate(_read_chain_file(path))
    except ValidationError as exc:
        raise ValueError(f"Invalid chain configuration in {path}: {exc}") from exc


def load_connector_config(
    chain: str,
    network: str,
    conf_dir: Optional[Path] = None,
) -> ConnectorConfig:
    chain_config = load_chain_config(chain, conf_dir)
    network_config = chain_config.networks.get(network)
    if network_config is None:
        raise UnsupportedNetworkError(
            f"Network {network!r} is not configured for chain {chain!r}",
            chain=chain,
            network=network,
        )
    return ConnectorConfig(
        chain=chain,
        network=network_config.model_copy(update={"name": network}),
        manual_gas_price=chain_config.manual_gas_price,
        gas_limit_transaction=chain_config.gas_limit_transaction,
    )


# Global settings instance
settings = Settings()
