"""
Nonce management for concurrent transactions.

Tracks the last nonce handed out per address so that two requests signing
for the same wallet do not collide, and re-syncs with the node's pending
transaction count on every allocation.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Set


class TransactionCounter(Protocol):
    async def get_transaction_count(self, address: str, block: str = "pending") -> int: ...


@dataclass
class NonceState:
    """Tracks nonce state for an address on a chain."""
    address: str
    chain_id: int
    last_nonce: int                             # Last nonce handed out or committed; -1 if none
    released_nonces: Set[int] = field(default_factory=set)  # Handed out, then given back below last_nonce
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NonceManager:
    """
    Manages nonces for one network.

    Features:
    - Syncs with the node's pending transaction count
    - Never hands out a nonce that is still in flight
    - Accepts externally chosen nonces via commit_nonce
    - Reuses nonces released after a failed broadcast
    - Per-address locking for concurrent access
    """

    def __init__(self, rpc: TransactionCounter, chain_id: int):
        self._rpc = rpc
        self._chain_id = chain_id
        self._states: Dict[str, NonceState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_key(self, address: str) -> str:
        return f"{self._chain_id}:{address.lower()}"

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def _remember(self, key: str, address: str, nonce: int) -> None:
        state = self._states.get(key)
        if state is None:
            self._states[key] = NonceState(address=address.lower(), chain_id=self._chain_id, last_nonce=nonce)
        else:
            state.last_nonce = nonce
            state.last_updated = datetime.now(timezone.utc)

    async def get_nonce(self, address: str) -> int:
        """
        Get the most recently used nonce for an address.

        Falls back to the node's pending count minus one when nothing has been
        handed out yet (-1 for a fresh account).
        """
        key = self._get_key(address)
        async with self._get_lock(key):
            state = self._states.get(key)
            if state is not None:
                return state.last_nonce
            on_chain = await self._rpc.get_transaction_count(address, "pending")
            return on_chain - 1

    async def get_next_nonce(self, address: str) -> int:
        """
        Allocate the next nonce for an address.

        A released nonce the node has not yet seen is handed out first.
        Otherwise the result is the larger of the node's pending count and the
        last allocated nonce plus one, and is remembered as the new last nonce.
        """
        key = self._get_key(address)
        async with self._get_lock(key):
            on_chain = await self._rpc.get_transaction_count(address, "pending")
            state = self._states.get(key)
            if state is None:
                nonce = on_chain
            else:
                state.released_nonces = {n for n in state.released_nonces if n >= on_chain}
                if state.released_nonces:
                    nonce = min(state.released_nonces)
                    state.released_nonces.discard(nonce)
                    state.last_updated = datetime.now(timezone.utc)
                    return nonce
                nonce = max(on_chain, state.last_nonce + 1)
            self._remember(key, address, nonce)
            return nonce

    async def release_nonce(self, address: str, nonce: int) -> None:
        """
        Give back a nonce whose transaction never reached the node.

        Releasing the highest allocated nonce winds ``last_nonce`` back past
        any released nonces below it; anything lower is kept for reuse.
        """
        key = self._get_key(address)
        async with self._get_lock(key):
            state = self._states.get(key)
            if state is None or nonce > state.last_nonce:
                return
            if nonce == state.last_nonce:
                state.last_nonce -= 1
                while state.last_nonce in state.released_nonces:
                    state.released_nonces.discard(state.last_nonce)
                    state.last_nonce -= 1
            else:
                state.released_nonces.add(nonce)
            state.last_updated = datetime.now(timezone.utc)

    async def commit_nonce(self, address: str, nonce: int) -> None:
        """Record a nonce chosen by the caller as used."""
        if nonce < 0:
            raise ValueError(f"Nonce must be non-negative, got {nonce}")
        key = self._get_key(address)
        async with self._get_lock(key):
            state = self._states.get(key)
            if state is None or nonce > state.last_nonce:
                self._remember(key, address, nonce)
            else:
                state.released_nonces.discard(nonce)

    def get_state(self, address: str) -> Optional[NonceState]:
        return self._states.get(self._get_key(address))

    def clear_state(self, address: Optional[str] = None) -> None:
        """Clear cached nonce state for one address, or for all of them."""
        if address is None:
            self._states.clear()
        else:
            self._states.pop(self._get_key(address), None)
