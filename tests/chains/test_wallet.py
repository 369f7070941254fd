"""
Tests for local-key signing and the wallet store.
"""

import pytest
from eth_account import Account

from gateway.chains.wallet import LocalAccountSigner, WalletStore
from gateway.core.errors import WalletNotFoundError
from gateway.core.tx_builder import TransactionBuilder


# Throwaway key; never funded
PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
ADDRESS = Account.from_key(PRIVATE_KEY).address


def test_signer_address():
    assert LocalAccountSigner(PRIVATE_KEY).address == ADDRESS


def test_signs_legacy_self_transfer():
    signer = LocalAccountSigner(PRIVATE_KEY)
    tx = TransactionBuilder.build_self_transfer(
        chain_id=49797,
        address=ADDRESS.lower(),
        nonce=3,
        gas_price=220 * 10**9,
    )

    raw = signer.sign_transaction(tx.to_signable())

    assert raw.startswith("0x")
    assert Account.recover_transaction(raw) == ADDRESS


def test_ignores_from_field():
    signer = LocalAccountSigner(PRIVATE_KEY)
    tx = TransactionBuilder.build_self_transfer(49797, ADDRESS, 0, 10**9).to_signable()
    tx["from"] = ADDRESS

    raw = signer.sign_transaction(tx)

    assert Account.recover_transaction(raw) == ADDRESS


def test_wallet_store_lookup():
    store = WalletStore([PRIVATE_KEY])

    assert len(store) == 1
    assert store.get(ADDRESS.lower()).address == ADDRESS
    assert store.addresses == [ADDRESS]


def test_wallet_store_missing_address():
    store = WalletStore()

    with pytest.raises(WalletNotFoundError) as exc_info:
        store.get("0x82cFC8ea7043b5459d0A4C9dbCc4c42106C8c0A5")

    assert exc_info.value.code == 1005
