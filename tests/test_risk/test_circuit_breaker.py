"""Tests for the price updater — source parsing, breaker, confirmed writes."""

from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from sentinel_fakes import FakeChannel, FakeContracts

from sentinel.chain.exceptions import TransactionFailedError
from sentinel.core.config import PriceFeedConfig
from sentinel.core.types import AlertLevel
from sentinel.monitor.dispatcher import AlertDispatcher
from sentinel.risk.circuit_breaker import (
    PriceOracleUpdater,
    SaucerSwapPriceSource,
    scale_price,
)
from sentinel.risk.exceptions import PriceSourceError


class StubSource(SaucerSwapPriceSource):
    """Returns queued prices; an exception in the queue is raised."""

    def __init__(self, *prices: Decimal | Exception) -> None:
        super().__init__("https://prices.test")
        self._prices = list(prices)

    async def connect(self) -> None:
        return None

    async def fetch_usd_price(self, token: str) -> Decimal:
        item = self._prices.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _updater(
    contracts: FakeContracts, source: SaucerSwapPriceSource, channel: FakeChannel | None = None,
) -> PriceOracleUpdater:
    return PriceOracleUpdater(
        contracts,
        source,
        PriceFeedConfig(enabled=True, gas_limit=100_000),
        max_change_percent=20,
        receipt_timeout_secs=1,
        dispatcher=AlertDispatcher(channels=[channel] if channel else []),
    )


class TestScale:
    def test_truncates_to_eight_decimals(self) -> None:
        assert scale_price(Decimal("0.071234567891")) == 7_123_456


class TestUpdater:
    async def test_first_price_written(self) -> None:
        contracts = FakeContracts()
        updater = _updater(contracts, StubSource(Decimal("0.07")))
        verdict = await updater.update_once()
        assert verdict is not None and verdict.accepted
        assert contracts.price_updates == [(7_000_000, 100_000)]
        assert updater.last_price == 7_000_000

    async def test_large_change_rejected_and_prior_kept(self) -> None:
        contracts = FakeContracts()
        channel = FakeChannel()
        updater = _updater(contracts, StubSource(Decimal("1.00"), Decimal("1.25")), channel)
        await updater.update_once()
        verdict = await updater.update_once()
        assert verdict is not None and not verdict.accepted
        assert updater.last_price == 100_000_000
        assert len(contracts.price_updates) == 1
        assert updater.rejected_count == 1
        assert channel.sent[0].level == AlertLevel.WARNING

    async def test_small_change_written(self) -> None:
        contracts = FakeContracts()
        updater = _updater(contracts, StubSource(Decimal("1.00"), Decimal("1.10")))
        await updater.update_once()
        await updater.update_once()
        assert updater.last_price == 110_000_000
        assert len(contracts.price_updates) == 2

    async def test_source_failure_skips_cycle(self) -> None:
        contracts = FakeContracts()
        updater = _updater(
            contracts, StubSource(Decimal("1.00"), PriceSourceError("503")),
        )
        await updater.update_once()
        assert await updater.update_once() is None
        assert updater.last_price == 100_000_000
        assert len(contracts.price_updates) == 1

    async def test_unconfirmed_write_not_remembered(self) -> None:
        contracts = FakeContracts(receipt_ok=False)
        updater = _updater(contracts, StubSource(Decimal("1.00")))
        await updater.update_once()
        assert updater.last_price is None

    async def test_write_error_not_remembered(self) -> None:
        contracts = FakeContracts()
        contracts.errors["wait_for_receipt"] = TransactionFailedError("timeout")
        updater = _updater(contracts, StubSource(Decimal("1.00")))
        await updater.update_once()
        assert updater.last_price is None


class TestSaucerSwapSource:
    def _source(self, handler: object) -> SaucerSwapPriceSource:
        source = SaucerSwapPriceSource("https://api.saucerswap.test/v1/")
        source._http = httpx.AsyncClient(transport=httpx.MockTransport(handler))  # type: ignore[arg-type]
        return source

    async def test_parses_price(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"priceUsd": "0.0712"})

        price = await self._source(handler).fetch_usd_price("HBAR")
        assert price == Decimal("0.0712")
        assert seen == ["https://api.saucerswap.test/v1/tokens/HBAR"]

    async def test_bad_status(self) -> None:
        source = self._source(lambda request: httpx.Response(503))
        with pytest.raises(PriceSourceError, match="503"):
            await source.fetch_usd_price("HBAR")

    async def test_missing_field(self) -> None:
        source = self._source(lambda request: httpx.Response(200, json={"symbol": "HBAR"}))
        with pytest.raises(PriceSourceError, match="priceUsd"):
            await source.fetch_usd_price("HBAR")

    async def test_not_connected(self) -> None:
        with pytest.raises(PriceSourceError):
            await SaucerSwapPriceSource("https://x").fetch_usd_price("HBAR")
