"""
Periodic gas price oracle.

Keeps one ``FeeEstimate`` per network fresh in the background so request
handlers can read a usable fee without waiting on the node:

- Disabled mode (no refresh interval): the manually configured price is
  served forever and the node is never asked.
- Enabled mode: a single task refreshes, then sleeps, then refreshes again.
  The next attempt is only scheduled once the previous one has finished, so
  there is never more than one fee request in flight per network.

A failed refresh keeps the previous estimate and is logged; it never reaches
callers.
"""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Protocol

from .models import FeeEstimate


logger = logging.getLogger(__name__)

# Node fees are quoted in wei; the oracle serves gwei.
GAS_PRICE_SCALE = Decimal("1e-9")


class FeeSource(Protocol):
    supports_priority_fee: bool

    async def get_fee_base(self) -> Optional[int]: ...

    async def get_priority_fee(self) -> Optional[int]: ...


class GasPriceOracle:
    """Single-writer, many-reader fee estimate for one network."""

    def __init__(
        self,
        source: FeeSource,
        *,
        manual_gas_price: Decimal,
        refresh_interval: Optional[float] = None,
        name: str = "",
    ):
        manual = Decimal(manual_gas_price)
        if manual < 0:
            raise ValueError(f"Manual gas price must be non-negative, got {manual}")
        if refresh_interval is not None and refresh_interval <= 0:
            raise ValueError(f"Refresh interval must be positive, got {refresh_interval}")

        self._source = source
        self._refresh_interval = refresh_interval
        self._name = name
        self._estimate = FeeEstimate(value=manual, source="manual")
        self._task: Optional[asyncio.Task] = None

        self.refresh_count = 0
        self.refresh_failures = 0
        self.last_refresh_error: Optional[str] = None

    @property
    def estimate(self) -> FeeEstimate:
        return self._estimate

    @property
    def refresh_interval(self) -> Optional[float]:
        return self._refresh_interval

    @property
    def refresh_enabled(self) -> bool:
        return self._refresh_interval is not None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def current_fee(self) -> Decimal:
        return self._estimate.value

    def set_manual_fee(self, value: Decimal) -> None:
        value = Decimal(value)
        if value < 0:
            raise ValueError(f"Gas price must be non-negative, got {value}")
        self._estimate = FeeEstimate(value=value, source="manual")

    async def fetch_node_fee(self) -> Optional[Decimal]:
        """Base fee plus priority fee (when the node serves one), in gwei."""
        base_fee = await self._source.get_fee_base()
        if base_fee is None:
            return None
        priority_fee = 0
        if self._source.supports_priority_fee:
            priority_fee = await self._source.get_priority_fee()
            if priority_fee is None:
                return None
        return Decimal(base_fee + priority_fee) * GAS_PRICE_SCALE

    async def refresh(self) -> bool:
        """
        Ask the node for a fresh fee once.

        Returns True when the estimate was replaced. Failures leave the
        previous estimate in place.
        """
        self.refresh_count += 1
        try:
            fee = await self.fetch_node_fee()
        except Exception as exc:  # noqa: BLE001
            self.refresh_failures += 1
            self.last_refresh_error = str(exc) or exc.__class__.__name__
            logger.warning(
                "Gas price refresh failed for %s, keeping %s gwei from %s: %s",
                self._name or "network",
                self._estimate.value,
                self._estimate.last_updated.isoformat(),
                self.last_refresh_error,
            )
            return False

        if fee is None or fee < 0:
            self.refresh_failures += 1
            self.last_refresh_error = f"unexpected gas price {fee!r}"
            logger.warning("gasPrice is unexpectedly null for %s.", self._name or "network")
            return False

        self._estimate = FeeEstimate(
            value=fee,
            last_updated=datetime.now(timezone.utc),
            source="node",
        )
        self.last_refresh_error = None
        logger.debug("Gas price for %s updated to %s gwei", self._name or "network", fee)
        return True

    async def _run(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self._refresh_interval)

    def start(self) -> None:
        """Start the refresh loop. No-op when refresh is disabled or already running."""
        if not self.refresh_enabled or self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"gas-price-refresh-{self._name}"
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
