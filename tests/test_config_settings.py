from decimal import Decimal

import pytest

from gateway.config import BASE_DIR, Settings, load_chain_config, load_connector_config
from gateway.core.errors import UnsupportedNetworkError


CONF_DIR = BASE_DIR / "conf"


def test_defaults(monkeypatch):
    """Gateway settings fall back to the stock port and the energi chain."""

    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.delenv("CHAINS", raising=False)

    settings = Settings()

    assert settings.port == 15888
    assert settings.chains == ["energi"]
    assert settings.metrics_log_interval_seconds == 300
    assert settings.has_wallets is False


def test_env_overrides(monkeypatch):
    """Environment variables override defaults; lists are read as JSON."""

    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("CHAINS", '["energi", "other"]')
    monkeypatch.setenv("WALLET_PRIVATE_KEYS", '["0x01"]')

    settings = Settings()

    assert settings.port == 9000
    assert settings.chains == ["energi", "other"]
    assert settings.has_wallets is True


def test_load_chain_config():
    config = load_chain_config("energi", CONF_DIR)

    assert set(config.networks) == {"mainnet", "testnet"}
    assert config.manual_gas_price == Decimal("110")
    assert config.gas_limit_transaction == 3000000


def test_load_connector_config_testnet():
    config = load_connector_config("energi", "testnet", CONF_DIR)

    assert config.chain == "energi"
    assert config.network.name == "testnet"
    assert config.network.chain_id == 49797
    assert config.network.native_currency_symbol == "NRG"
    assert config.network.gas_price_refresh_interval is None
    assert config.network.supports_priority_fee is False
    assert config.network.token_list_source == "conf/lists/energi_testnet.json"


def test_load_connector_config_mainnet():
    config = load_connector_config("energi", "mainnet", CONF_DIR)

    assert config.network.chain_id == 39797
    assert config.network.gas_price_refresh_interval == 60
    assert config.network.supports_priority_fee is True


def test_unknown_network():
    with pytest.raises(UnsupportedNetworkError) as exc_info:
        load_connector_config("energi", "devnet", CONF_DIR)
    assert exc_info.value.details["network"] == "devnet"


def test_unknown_chain(tmp_path):
    with pytest.raises(UnsupportedNetworkError):
        load_chain_config("energi", tmp_path)


def test_invalid_chain_file(tmp_path):
    (tmp_path / "broken.yml").write_text("networks: {}\nmanualGasPrice: -1\ngasLimitTransaction: 1\n")

    with pytest.raises(ValueError):
        load_chain_config("broken", tmp_path)
