"""Tests for ProtocolMetricsCollector — aggregation, zero supply, fallback."""

from __future__ import annotations

from decimal import Decimal

from sentinel_fakes import FakeContracts, healthy_contracts

from sentinel.chain.exceptions import ChainCallError, ChainConnectionError
from sentinel.core.types import AssetData
from sentinel.monitor.metrics import (
    PLACEHOLDER_AVERAGE_HEALTH_FACTOR,
    PLACEHOLDER_PENDING_LIQUIDATIONS,
    ProtocolMetricsCollector,
    compute_utilization,
)


def _two_assets() -> FakeContracts:
    return FakeContracts(
        assets=["0xA", "0xB"],
        asset_data={
            "0xA": AssetData(total_supply=1000 * 10**18, total_borrow=970 * 10**18),
            "0xB": AssetData(total_supply=200 * 10**18, total_borrow=50 * 10**18),
        },
        prices={"0xA": 100_000_000, "0xB": 250_000_000},
    )


class TestCollect:
    async def test_aggregates_usd_totals(self) -> None:
        collector = ProtocolMetricsCollector(_two_assets(), clock=lambda: 123.0)
        snap = await collector.collect()
        assert snap is not None
        assert snap.total_value_locked == Decimal(1500)
        assert snap.total_borrowed == Decimal(1095)
        assert snap.utilization_by_asset["0xA"] == Decimal("0.97")
        assert snap.utilization_by_asset["0xB"] == Decimal("0.25")
        assert snap.captured_at == 123.0
        assert collector.get_latest() is snap

    async def test_placeholders(self) -> None:
        snap = await ProtocolMetricsCollector(healthy_contracts()).collect()
        assert snap is not None
        assert snap.average_health_factor == PLACEHOLDER_AVERAGE_HEALTH_FACTOR == Decimal("1.5")
        assert snap.pending_liquidations == PLACEHOLDER_PENDING_LIQUIDATIONS == 0

    async def test_zero_supply_has_zero_utilization(self) -> None:
        contracts = healthy_contracts(
            asset_data={"0xA": AssetData(total_supply=0, total_borrow=0)},
        )
        snap = await ProtocolMetricsCollector(contracts).collect()
        assert snap is not None
        assert snap.utilization_by_asset["0xA"] == Decimal(0)

    async def test_zero_price_has_zero_utilization(self) -> None:
        snap = await ProtocolMetricsCollector(healthy_contracts(prices={})).collect()
        assert snap is not None
        assert snap.utilization_by_asset["0xA"] == Decimal(0)

    async def test_failing_asset_skipped(self) -> None:
        contracts = _two_assets()
        contracts.errors["asset_data:0xB"] = ChainCallError("revert")
        snap = await ProtocolMetricsCollector(contracts).collect()
        assert snap is not None
        assert list(snap.utilization_by_asset) == ["0xA"]
        assert snap.total_value_locked == Decimal(1000)

    async def test_no_assets(self) -> None:
        snap = await ProtocolMetricsCollector(FakeContracts()).collect()
        assert snap is not None
        assert snap.total_value_locked == 0
        assert snap.utilization_by_asset == {}


class TestFallback:
    async def test_total_failure_before_success_returns_none(self) -> None:
        contracts = healthy_contracts()
        contracts.errors["list_assets"] = ChainConnectionError("down")
        collector = ProtocolMetricsCollector(contracts)
        assert await collector.collect() is None
        assert collector.failure_count == 1

    async def test_total_failure_returns_previous_snapshot(self) -> None:
        contracts = healthy_contracts()
        collector = ProtocolMetricsCollector(contracts)
        first = await collector.collect()

        contracts.errors["list_assets"] = ChainConnectionError("down")
        again = await collector.collect()
        assert again is first
        assert collector.get_latest() is first

    async def test_every_asset_failing_returns_previous(self) -> None:
        contracts = healthy_contracts()
        collector = ProtocolMetricsCollector(contracts)
        first = await collector.collect()

        contracts.errors["asset_price"] = ChainCallError("oracle down")
        assert await collector.collect() is first
        assert collector.collect_count == 2


class TestUtilization:
    def test_compute(self) -> None:
        assert compute_utilization(Decimal(1), Decimal(4)) == Decimal("0.25")
        assert compute_utilization(Decimal(1), Decimal(0)) == Decimal(0)
