"""
Token list loading.

A token list is a JSON document ``{"tokens": [{chainId, address, name,
symbol, decimals}, ...]}`` read either from a file under the repository root
(``FILE``) or fetched over HTTP (``URL``).
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from ..config import BASE_DIR
from ..core.models import TokenInfo


logger = logging.getLogger(__name__)


class TokenList:
    def __init__(self, tokens: Iterable[TokenInfo] = ()):
        self._tokens: List[TokenInfo] = list(tokens)
        self._by_symbol: Dict[str, TokenInfo] = {}
        self._by_address: Dict[str, TokenInfo] = {}
        for token in self._tokens:
            self._by_symbol.setdefault(token.symbol.upper(), token)
            self._by_address[token.address.lower()] = token

    @classmethod
    def from_json(cls, document: Dict[str, Any], chain_id: Optional[int] = None) -> "TokenList":
        """Build a list from a token-list document, keeping only ``chain_id`` tokens when given."""
        tokens = []
        for entry in document.get("tokens", []):
            token = TokenInfo(
                chain_id=int(entry["chainId"]),
                address=entry["address"],
                name=entry.get("name", entry["symbol"]),
                symbol=entry["symbol"],
                decimals=int(entry["decimals"]),
            )
            if chain_id is None or token.chain_id == chain_id:
                tokens.append(token)
        return cls(tokens)

    @classmethod
    async def load(
        cls,
        list_type: str,
        source: Optional[str],
        *,
        chain_id: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "TokenList":
        if not source:
            return cls()

        if list_type.upper() == "URL":
            if client is None:
                async with httpx.AsyncClient(timeout=30.0) as owned_client:
                    response = await owned_client.get(source)
            else:
                response = await client.get(source)
            response.raise_for_status()
            document = response.json()
        elif list_type.upper() == "FILE":
            with open(BASE_DIR / source, "r") as f:
                document = json.load(f)
        else:
            raise ValueError(f"Unsupported token list type: {list_type}")

        token_list = cls.from_json(document, chain_id=chain_id)
        logger.info("Loaded %d token(s) from %s", len(token_list), source)
        return token_list

    def by_symbol(self, symbol: str) -> Optional[TokenInfo]:
        return self._by_symbol.get(symbol.upper())

    def by_address(self, address: str) -> Optional[TokenInfo]:
        return self._by_address.get(address.lower())

    @property
    def tokens(self) -> List[TokenInfo]:
        return list(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)
