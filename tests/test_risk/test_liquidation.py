"""Tests for the liquidation scan and the Supabase loan store."""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from sentinel_fakes import FakeChannel, FakeContracts, MemoryLoanStore

from sentinel.chain.exceptions import ChainCallError
from sentinel.core.config import LiquidationConfig
from sentinel.core.types import AlertLevel, LoanHealth, LoanStatus
from sentinel.monitor.dispatcher import AlertDispatcher
from sentinel.risk.exceptions import LoanStoreError
from sentinel.risk.liquidation import LiquidationMonitor, LoanStore, SupabaseLoanStore


def _monitor(
    contracts: FakeContracts, store: LoanStore,
) -> tuple[LiquidationMonitor, FakeChannel]:
    channel = FakeChannel()
    monitor = LiquidationMonitor(
        contracts,
        store,
        AlertDispatcher(channels=[channel]),
        LiquidationConfig(enabled=True, max_concurrency=2),
        clock=lambda: 500.0,
    )
    return monitor, channel


class TestScan:
    async def test_classifies_and_persists(self) -> None:
        contracts = FakeContracts(health_factors={
            "0xLow": Decimal("0.9"),
            "0xMid": Decimal("1.1"),
            "0xOk": Decimal("2.0"),
        })
        store = MemoryLoanStore(["0xLow", "0xMid", "0xOk"])
        monitor, channel = _monitor(contracts, store)

        results = await monitor.check_all_loans()
        assert results == {
            "0xLow": LoanHealth.LIQUIDATABLE,
            "0xMid": LoanHealth.WARNING,
            "0xOk": LoanHealth.HEALTHY,
        }
        assert len(store.checks) == 3
        assert all(ts == 500.0 for _, _, ts in store.checks)
        assert store.loans["0xLow"].status == LoanStatus.PENDING_LIQUIDATION
        assert store.warnings == ["0xMid"]
        levels = sorted(a.level for a in channel.sent)
        assert levels == [AlertLevel.WARNING, AlertLevel.CRITICAL]

    async def test_failing_read_skips_loan(self) -> None:
        contracts = FakeContracts(health_factors={"0xA": Decimal(2), "0xB": Decimal(2)})
        contracts.errors["health_factor:0xA"] = ChainCallError("revert")
        store = MemoryLoanStore(["0xA", "0xB"])
        monitor, _ = _monitor(contracts, store)
        results = await monitor.check_all_loans()
        assert results == {"0xB": LoanHealth.HEALTHY}
        assert monitor.last_results == results

    async def test_store_unavailable(self) -> None:
        store = MemoryLoanStore(["0xA"])
        store.fail_list = True
        monitor, channel = _monitor(FakeContracts(), store)
        assert await monitor.check_all_loans() == {}
        assert channel.sent == []

    async def test_pending_loans_not_rescanned(self) -> None:
        contracts = FakeContracts(health_factors={"0xLow": Decimal("0.5")})
        store = MemoryLoanStore(["0xLow"])
        monitor, channel = _monitor(contracts, store)
        await monitor.check_all_loans()
        await monitor.check_all_loans()
        assert len(channel.sent) == 1


class TestSupabaseLoanStore:
    def _store(self, handler: object) -> SupabaseLoanStore:
        store = SupabaseLoanStore("https://db.test", "anon-key")
        store._http = httpx.AsyncClient(
            base_url="https://db.test/rest/v1",
            transport=httpx.MockTransport(handler),  # type: ignore[arg-type]
        )
        return store

    async def test_list_active(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[
                {"user_wallet": "0xA", "status": "active", "health_factor": 1.4},
                {"user_wallet": "0xB", "status": "active", "health_factor": None},
            ])

        loans = await self._store(handler).list_active_loans()
        assert [loan.borrower for loan in loans] == ["0xA", "0xB"]
        assert loans[0].health_factor == Decimal("1.4")
        assert loans[1].health_factor is None
        assert seen[0].url.path == "/rest/v1/loans"
        assert seen[0].url.params["status"] == "eq.active"

    async def test_mark_pending(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        await self._store(handler).mark_pending_liquidation("0xA", 0.0)
        request = seen[0]
        assert request.method == "PATCH"
        assert request.url.params["user_wallet"] == "eq.0xA"
        body = json.loads(request.content)
        assert body["status"] == "pending_liquidation"
        assert body["liquidation_triggered_at"].startswith("1970-01-01")

    async def test_record_warning(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201)

        await self._store(handler).record_warning("0xA", Decimal("1.1"), 0.0)
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/rest/v1/loan_warnings"
        assert json.loads(seen[0].content)["warning_type"] == "low_health_factor"

    async def test_error_status(self) -> None:
        store = self._store(lambda request: httpx.Response(401))
        with pytest.raises(LoanStoreError, match="401"):
            await store.list_active_loans()

    def test_auth_headers(self) -> None:
        client = SupabaseLoanStore("https://db.test/", "k")._client()
        assert client.headers["apikey"] == "k"
        assert client.headers["Authorization"] == "Bearer k"
