"""
Tests for the per-network connector facade.
"""

import asyncio
import logging
from decimal import Decimal

import pytest

from gateway.chains.connector import NetworkConnector
from gateway.chains.rpc import RpcError
from gateway.chains.tokens import TokenList
from gateway.chains.wallet import WalletStore
from gateway.core.errors import (
    InvalidParameterError,
    TokenNotSupportedError,
    TransientNetworkError,
    WalletNotFoundError,
)
from gateway.core.tx_builder import MAX_UINT256, encode_allowance, encode_balance_of


WNRG = "0x16c5074d9fc6afdbc021A8e44C8511d1A090F9AD"
SPENDER = "0x7a250d5630b4cf539739df2c5dacb4c659f2488d"
GWEI = 10**9


@pytest.fixture
def connector(testnet_config, fake_node, signer):
    wallets = WalletStore()
    wallets.add(signer)
    return NetworkConnector(testnet_config, wallets=wallets, rpc=fake_node, metrics_log_interval=300)


class TestIdentity:
    def test_properties(self, connector):
        assert connector.chain == "energi"
        assert connector.network == "testnet"
        assert connector.chain_id == 49797
        assert connector.native_token_symbol == "NRG"
        assert connector.gas_price == Decimal("110")
        assert connector.gas_limit_transaction == 3000000
        assert connector.metrics_log_interval == 300

    def test_spender_passthrough(self, connector):
        assert connector.get_spender(SPENDER) == SPENDER

    def test_configured_spender(self, testnet_config, fake_node):
        network = testnet_config.network.model_copy(update={"spenders": {"energiswap": SPENDER}})
        config = testnet_config.model_copy(update={"network": network})

        connector = NetworkConnector(config, rpc=fake_node)

        assert connector.get_spender("energiswap") == SPENDER

    def test_unconfigured_spender_name_is_rejected(self, connector):
        with pytest.raises(InvalidParameterError) as exc_info:
            connector.get_spender("energiswap")

        assert exc_info.value.http_status == 404
        assert "energi/testnet" in exc_info.value.message

    def test_malformed_configured_spender_is_rejected(self, testnet_config, fake_node):
        network = testnet_config.network.model_copy(update={"spenders": {"energiswap": "0x1234"}})
        config = testnet_config.model_copy(update={"network": network})

        with pytest.raises(InvalidParameterError):
            NetworkConnector(config, rpc=fake_node).get_spender("energiswap")

    def test_wallet_lookup(self, connector, signer):
        assert connector.get_wallet(signer.address.upper().replace("0X", "0x")) is signer
        with pytest.raises(WalletNotFoundError):
            connector.get_wallet("0x" + "9" * 40)


class TestRequestMetrics:
    @pytest.mark.asyncio
    async def test_counts_requests(self, connector):
        await connector.get_current_block_number()
        await connector.poll("0x" + "ab" * 32)

        # blockNumber, then blockNumber + getTransactionByHash for the unknown hash
        assert connector.request_count == 3

    def test_ignores_other_actions(self, connector):
        connector.request_counter({"action": "response"})
        connector.request_counter({"action": "request"})
        assert connector.request_count == 1

    def test_metric_logger_logs_and_resets(self, connector, caplog):
        for _ in range(4):
            connector.request_counter({"action": "request"})

        with caplog.at_level(logging.INFO):
            connector.metric_logger()

        assert "4 request(s) sent in last 300 seconds." in caplog.text
        assert connector.request_count == 0


class TestTokens:
    @pytest.mark.asyncio
    async def test_init_loads_token_list(self, connector):
        assert connector.ready() is False

        await connector.init()

        assert connector.ready() is True
        token = connector.get_token_by_symbol("wnrg")
        assert token.address == WNRG
        assert token.decimals == 18
        assert connector.get_token_by_symbol("NOPE") is None
        with pytest.raises(TokenNotSupportedError):
            connector.get_token_for_symbol("NOPE")

    @pytest.mark.asyncio
    async def test_concurrent_init_loads_token_list_once(self, connector, monkeypatch):
        loads = []

        async def slow_load(list_type, source, chain_id=None, client=None):
            loads.append(source)
            await asyncio.sleep(0.01)
            return TokenList()

        monkeypatch.setattr(TokenList, "load", slow_load)

        await asyncio.gather(connector.init(), connector.init(), connector.init())

        assert len(loads) == 1
        assert connector.ready() is True

    @pytest.mark.asyncio
    async def test_balances(self, connector, fake_node, signer):
        await connector.init()
        token = connector.get_token_by_symbol("WNRG")
        fake_node.balances[signer.address.lower()] = 1
        fake_node.call_results[(WNRG.lower(), encode_balance_of(signer.address))] = "0x" + format(
            25 * 10**17, "064x"
        )

        native = await connector.get_native_balance(signer.address)
        erc20 = await connector.get_erc20_balance(token, signer.address)

        assert str(native) == "0.000000000000000001"
        assert str(erc20) == "2.5"

    @pytest.mark.asyncio
    async def test_allowance_defaults_to_zero(self, connector, signer):
        await connector.init()
        token = connector.get_token_by_symbol("DAI")

        allowance = await connector.get_erc20_allowance(token, signer.address, SPENDER)

        assert allowance.value == 0
        assert str(allowance) == "0"

    @pytest.mark.asyncio
    async def test_allowance_value(self, connector, fake_node, signer):
        await connector.init()
        token = connector.get_token_by_symbol("DAI")
        fake_node.call_results[(token.address.lower(), encode_allowance(signer.address, SPENDER))] = (
            "0x" + format(MAX_UINT256, "064x")
        )

        allowance = await connector.get_erc20_allowance(token, signer.address, SPENDER)

        assert allowance.value == MAX_UINT256


class TestApprove:
    @pytest.mark.asyncio
    async def test_legacy_approval_uses_next_nonce(self, connector, fake_node, signer):
        await connector.init()
        token = connector.get_token_by_symbol("WNRG")

        submitted = await connector.approve_erc20(signer, SPENDER, token)

        tx = signer.signed[-1]
        assert submitted.nonce == 0
        assert tx["to"] == WNRG
        assert tx["gasPrice"] == 110 * GWEI
        assert tx["gas"] == 3000000
        assert tx["data"].startswith("0x095ea7b3")
        assert tx["data"].endswith("f" * 64)
        assert submitted.hash in fake_node.transactions

        second = await connector.approve_erc20(signer, SPENDER, token, amount=5)
        assert second.nonce == 1
        assert signer.signed[-1]["data"].endswith(format(5, "064x"))

    @pytest.mark.asyncio
    async def test_eip1559_fields_and_explicit_nonce(self, connector, signer):
        await connector.init()
        token = connector.get_token_by_symbol("WNRG")

        submitted = await connector.approve_erc20(
            signer,
            SPENDER,
            token,
            nonce=9,
            max_fee_per_gas=30 * GWEI,
            max_priority_fee_per_gas=GWEI,
        )

        tx = signer.signed[-1]
        assert "gasPrice" not in tx
        assert tx["maxFeePerGas"] == 30 * GWEI
        assert tx["maxPriorityFeePerGas"] == GWEI
        assert submitted.nonce == 9
        assert await connector.nonce_manager.get_nonce(signer.address) == 9

    @pytest.mark.asyncio
    async def test_failed_send_gives_nonce_back(self, connector, fake_node, signer):
        await connector.init()
        token = connector.get_token_by_symbol("WNRG")
        fake_node.errors["eth_sendRawTransaction"] = RpcError("unreachable", code="NETWORK_ERROR")

        with pytest.raises(TransientNetworkError):
            await connector.approve_erc20(signer, SPENDER, token)

        del fake_node.errors["eth_sendRawTransaction"]
        submitted = await connector.approve_erc20(signer, SPENDER, token)

        assert submitted.nonce == 0
        assert signer.signed[-1]["nonce"] == 0

    @pytest.mark.asyncio
    async def test_failed_send_with_explicit_nonce_is_not_committed(self, connector, fake_node, signer):
        await connector.init()
        token = connector.get_token_by_symbol("WNRG")
        fake_node.errors["eth_sendRawTransaction"] = RpcError("unreachable", code="NETWORK_ERROR")

        with pytest.raises(TransientNetworkError):
            await connector.approve_erc20(signer, SPENDER, token, nonce=5)

        assert connector.nonce_manager.get_state(signer.address) is None
        assert await connector.nonce_manager.get_nonce(signer.address) == -1


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_tx_commits_nonce(self, connector, fake_node, signer):
        submitted = await connector.cancel_tx(signer, 4)

        assert submitted.gas_price == 220 * GWEI
        assert submitted.to_address == signer.address
        assert await connector.nonce_manager.get_nonce(signer.address) == 4


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_close(self, connector, fake_node):
        connector.start()
        assert connector._metrics_task is not None

        await connector.close()

        assert connector._metrics_task is None
        assert fake_node.closed is True
        assert connector.ready() is False

    @pytest.mark.asyncio
    async def test_metrics_loop_resets_counter(self, testnet_config, fake_node, caplog):
        connector = NetworkConnector(testnet_config, rpc=fake_node, metrics_log_interval=0.01)
        connector.request_counter({"action": "request"})

        with caplog.at_level(logging.INFO):
            connector.start()
            await asyncio.sleep(0.05)
            await connector.close()

        assert "1 request(s) sent in last 0.01 seconds." in caplog.text
        assert connector.request_count == 0
