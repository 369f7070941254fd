"""
Local-key signers.

Private keys come from configuration; this module only wraps them for
signing. Key generation and encrypted storage are out of scope.
"""

import logging
from typing import Any, Dict, Iterable

from eth_account import Account
from eth_utils import to_checksum_address, to_hex

from ..core.errors import WalletNotFoundError


logger = logging.getLogger(__name__)


class LocalAccountSigner:
    """Signs transaction dicts with a private key held in memory."""

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, tx: Dict[str, Any]) -> str:
        """Sign and return the raw transaction as a 0x-prefixed hex string."""
        tx = dict(tx)
        tx.pop("from", None)
        if tx.get("to"):
            tx["to"] = to_checksum_address(tx["to"])
        signed = self._account.sign_transaction(tx)
        return to_hex(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"LocalAccountSigner({self.address})"


class WalletStore:
    """Signers indexed by lowercase address."""

    def __init__(self, private_keys: Iterable[str] = ()):
        self._signers: Dict[str, LocalAccountSigner] = {}
        for key in private_keys:
            self.add(LocalAccountSigner(key))

    def add(self, signer) -> None:
        self._signers[signer.address.lower()] = signer
        logger.info("Loaded wallet %s", signer.address)

    def get(self, address: str):
        signer = self._signers.get(address.lower())
        if signer is None:
            raise WalletNotFoundError(address)
        return signer

    @property
    def addresses(self) -> list[str]:
        return [signer.address for signer in self._signers.values()]

    def __len__(self) -> int:
        return len(self._signers)
