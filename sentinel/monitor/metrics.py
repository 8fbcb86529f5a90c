"""ProtocolMetricsCollector — protocol-wide TVL, borrow and utilization.

Reads every configured reserve's supply/borrow totals and oracle price,
aggregates USD-denominated totals and computes per-asset utilization.
One bad reserve is skipped; a cycle that yields nothing falls back to the
last good snapshot so the evaluator never sees a spurious all-zero reading.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from decimal import Decimal

import structlog

from sentinel.chain.contracts import ProtocolContracts
from sentinel.core.types import MetricsSnapshot
from sentinel.probes.probes import describe_error

logger = structlog.stdlib.get_logger()

# Not yet computed: both need a borrower registry this service does not own.
PLACEHOLDER_AVERAGE_HEALTH_FACTOR = Decimal("1.5")
PLACEHOLDER_PENDING_LIQUIDATIONS = 0


def compute_utilization(borrow_usd: Decimal, supply_usd: Decimal) -> Decimal:
    """Borrowed fraction of supplied liquidity; 0 when nothing is supplied."""
    if supply_usd <= 0:
        return Decimal(0)
    return borrow_usd / supply_usd


class ProtocolMetricsCollector:
    """Builds a ``MetricsSnapshot`` per collection cycle.

    Usage::

        collector = ProtocolMetricsCollector(contracts)
        snapshot = await collector.collect()
        latest = collector.get_latest()
    """

    def __init__(
        self,
        contracts: ProtocolContracts,
        *,
        supply_decimals: int = 18,
        price_decimals: int = 8,
        timeout_secs: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._contracts = contracts
        self._supply_decimals = supply_decimals
        self._price_decimals = price_decimals
        self._timeout_secs = timeout_secs
        self._clock = clock
        self._latest: MetricsSnapshot | None = None
        self._collect_count = 0
        self._failure_count = 0

    @property
    def collect_count(self) -> int:
        return self._collect_count

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def get_latest(self) -> MetricsSnapshot | None:
        """The last successfully collected snapshot, if any."""
        return self._latest

    async def collect(self) -> MetricsSnapshot | None:
        """Collect a fresh snapshot, or return the previous one on total failure."""
        self._collect_count += 1
        try:
            assets = await asyncio.wait_for(
                self._contracts.list_assets(), timeout=self._timeout_secs,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._failure_count += 1
            logger.error("metrics_collection_failed", error=describe_error(exc))
            return self._latest

        readings = await asyncio.gather(*(self._read_asset(a) for a in assets))

        if assets and all(r is None for r in readings):
            self._failure_count += 1
            logger.error("metrics_collection_failed", error="every asset read failed")
            return self._latest

        total_supply = Decimal(0)
        total_borrow = Decimal(0)
        utilization: dict[str, Decimal] = {}
        for asset, reading in zip(assets, readings):
            if reading is None:
                continue
            supply_usd, borrow_usd = reading
            total_supply += supply_usd
            total_borrow += borrow_usd
            utilization[asset] = compute_utilization(borrow_usd, supply_usd)

        snapshot = MetricsSnapshot(
            total_value_locked=total_supply,
            total_borrowed=total_borrow,
            utilization_by_asset=utilization,
            average_health_factor=await self.average_health_factor(),
            pending_liquidations=await self.pending_liquidations(),
            captured_at=self._clock(),
        )
        self._latest = snapshot
        logger.debug(
            "metrics_collected",
            assets=len(utilization),
            tvl=str(total_supply),
            borrowed=str(total_borrow),
        )
        return snapshot

    async def average_health_factor(self) -> Decimal:
        """Average borrower health factor.

        Returns ``PLACEHOLDER_AVERAGE_HEALTH_FACTOR`` until borrower indexing
        exists; the value is deliberately above the default alert threshold.
        """
        return PLACEHOLDER_AVERAGE_HEALTH_FACTOR

    async def pending_liquidations(self) -> int:
        """Positions awaiting liquidation. Always 0 until borrower indexing exists."""
        return PLACEHOLDER_PENDING_LIQUIDATIONS

    async def _read_asset(self, asset: str) -> tuple[Decimal, Decimal] | None:
        """Return (supply_usd, borrow_usd) for *asset*, or None on failure."""
        try:
            data, price = await asyncio.wait_for(
                asyncio.gather(
                    self._contracts.asset_data(asset),
                    self._contracts.asset_price(asset),
                ),
                timeout=self._timeout_secs,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("asset_metrics_failed", asset=asset, error=describe_error(exc))
            return None

        usd_price = Decimal(price).scaleb(-self._price_decimals)
        supply_usd = Decimal(data.total_supply).scaleb(-self._supply_decimals) * usd_price
        borrow_usd = Decimal(data.total_borrow).scaleb(-self._supply_decimals) * usd_price
        return supply_usd, borrow_usd
