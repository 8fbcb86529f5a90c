"""Liquidation trigger loop — per-borrower health scan over the loan store."""

from __future__ import annotations

import abc
import asyncio
import time
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import httpx
import structlog

from sentinel.chain.contracts import ProtocolContracts
from sentinel.core.config import LiquidationConfig
from sentinel.core.periodic import PeriodicTask
from sentinel.core.types import Loan, LoanHealth, LoanStatus
from sentinel.monitor.dispatcher import AlertDispatcher
from sentinel.probes.probes import describe_error
from sentinel.risk.exceptions import LoanStoreError
from sentinel.risk.thresholds import classify_health_factor, evaluate_loan_health

logger = structlog.stdlib.get_logger()


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).isoformat()


class LoanStore(abc.ABC):
    """Where active loans live and where scan results are written back."""

    @abc.abstractmethod
    async def list_active_loans(self) -> list[Loan]:
        """Loans whose status is ``active``."""

    @abc.abstractmethod
    async def record_health_factor(
        self, borrower: str, health_factor: Decimal, checked_at: float,
    ) -> None:
        """Persist the latest health factor and its check time."""

    @abc.abstractmethod
    async def mark_pending_liquidation(self, borrower: str, triggered_at: float) -> None:
        """Move an active loan to ``pending_liquidation``."""

    @abc.abstractmethod
    async def record_warning(
        self, borrower: str, health_factor: Decimal, created_at: float,
    ) -> None:
        """Append a low-health-factor warning record."""

    async def close(self) -> None:
        return None


class SupabaseLoanStore(LoanStore):
    """Loan store backed by Supabase's PostgREST API.

    Tables: ``loans`` (``user_wallet``, ``status``, ``health_factor``,
    ``last_health_check``, ``liquidation_triggered_at``) and
    ``loan_warnings`` (``user_wallet``, ``health_factor``, ``warning_type``,
    ``created_at``).
    """

    def __init__(self, base_url: str, api_key: str, timeout_secs: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_secs = timeout_secs
        self._http: httpx.AsyncClient | None = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=f"{self._base_url}/rest/v1",
                timeout=httpx.Timeout(self._timeout_secs),
                headers={
                    "apikey": self._api_key,
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._http

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def list_active_loans(self) -> list[Loan]:
        rows = await self._request(
            "GET",
            "/loans",
            params={
                "select": "user_wallet,status,health_factor",
                "status": f"eq.{LoanStatus.ACTIVE}",
            },
        )
        if not isinstance(rows, list):
            raise LoanStoreError("Loan store returned an unexpected payload")
        loans: list[Loan] = []
        for row in rows:
            hf = row.get("health_factor")
            loans.append(Loan(
                borrower=row["user_wallet"],
                status=LoanStatus(row.get("status", LoanStatus.ACTIVE)),
                health_factor=Decimal(str(hf)) if hf is not None else None,
            ))
        return loans

    async def record_health_factor(
        self, borrower: str, health_factor: Decimal, checked_at: float,
    ) -> None:
        await self._request(
            "PATCH",
            "/loans",
            params=self._active_loan(borrower),
            json={
                "health_factor": float(health_factor),
                "last_health_check": _iso(checked_at),
            },
        )

    async def mark_pending_liquidation(self, borrower: str, triggered_at: float) -> None:
        await self._request(
            "PATCH",
            "/loans",
            params=self._active_loan(borrower),
            json={
                "status": str(LoanStatus.PENDING_LIQUIDATION),
                "liquidation_triggered_at": _iso(triggered_at),
            },
        )

    async def record_warning(
        self, borrower: str, health_factor: Decimal, created_at: float,
    ) -> None:
        await self._request(
            "POST",
            "/loan_warnings",
            json={
                "user_wallet": borrower,
                "health_factor": float(health_factor),
                "warning_type": "low_health_factor",
                "created_at": _iso(created_at),
            },
        )

    @staticmethod
    def _active_loan(borrower: str) -> dict[str, str]:
        return {"user_wallet": f"eq.{borrower}", "status": f"eq.{LoanStatus.ACTIVE}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._client().request(method, path, params=params, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise LoanStoreError(
                f"Loan store returned {exc.response.status_code} for {method} {path}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LoanStoreError(f"Loan store request failed: {exc}") from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise LoanStoreError("Loan store returned invalid JSON") from exc


class LiquidationMonitor:
    """Hourly scan of active loans against the liquidation thresholds.

    For each loan: read the health factor on-chain, write it back to the
    store, then mark and alert (liquidatable) or warn (warning zone). One
    loan's failure is logged and skipped; the scan carries on.
    """

    def __init__(
        self,
        contracts: ProtocolContracts,
        store: LoanStore,
        dispatcher: AlertDispatcher,
        config: LiquidationConfig,
        *,
        read_timeout_secs: float = 10.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._contracts = contracts
        self._store = store
        self._dispatcher = dispatcher
        self._config = config
        self._read_timeout_secs = read_timeout_secs
        self._clock = clock
        self._semaphore = asyncio.Semaphore(max(1, config.max_concurrency))
        self._last_results: dict[str, LoanHealth] = {}
        self._task = PeriodicTask(
            "liquidation_scan", self.check_all_loans, config.check_interval_secs,
        )

    @property
    def running(self) -> bool:
        return self._task.running

    @property
    def last_results(self) -> dict[str, LoanHealth]:
        """Classification per borrower from the most recent scan."""
        return dict(self._last_results)

    async def start(self) -> None:
        self._task.start()
        logger.info("liquidation_monitor_started", interval_secs=self._config.check_interval_secs)

    async def stop(self, grace_secs: float | None = None) -> None:
        await self._task.stop(grace_secs)
        await self._store.close()
        logger.info("liquidation_monitor_stopped")

    async def check_all_loans(self) -> dict[str, LoanHealth]:
        try:
            loans = await self._store.list_active_loans()
        except LoanStoreError as exc:
            logger.error("loan_list_failed", error=str(exc))
            return {}

        logger.info("liquidation_scan_started", loans=len(loans))
        outcomes = await asyncio.gather(*(self._check_guarded(loan.borrower) for loan in loans))
        results = {
            loan.borrower: health
            for loan, health in zip(loans, outcomes)
            if health is not None
        }
        self._last_results = results
        logger.info(
            "liquidation_scan_completed",
            checked=len(results),
            liquidatable=sum(1 for h in results.values() if h == LoanHealth.LIQUIDATABLE),
            warning=sum(1 for h in results.values() if h == LoanHealth.WARNING),
        )
        return results

    async def _check_guarded(self, borrower: str) -> LoanHealth | None:
        async with self._semaphore:
            try:
                return await self.check_loan(borrower)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("loan_check_failed", borrower=borrower, error=describe_error(exc))
                return None

    async def check_loan(self, borrower: str) -> LoanHealth:
        """Read, persist, classify and act on one borrower's health factor."""
        health_factor = await asyncio.wait_for(
            self._contracts.health_factor(borrower), timeout=self._read_timeout_secs,
        )
        now = self._clock()
        logger.debug("loan_health_factor", borrower=borrower, health_factor=str(health_factor))

        try:
            await self._store.record_health_factor(borrower, health_factor, now)
        except LoanStoreError as exc:
            logger.warning("health_factor_persist_failed", borrower=borrower, error=str(exc))

        health = classify_health_factor(health_factor, self._config)
        if health == LoanHealth.LIQUIDATABLE:
            logger.warning("loan_liquidatable", borrower=borrower, health_factor=str(health_factor))
            try:
                await self._store.mark_pending_liquidation(borrower, now)
            except LoanStoreError as exc:
                logger.error("loan_mark_failed", borrower=borrower, error=str(exc))
        elif health == LoanHealth.WARNING:
            logger.warning("loan_warning_zone", borrower=borrower, health_factor=str(health_factor))
            try:
                await self._store.record_warning(borrower, health_factor, now)
            except LoanStoreError as exc:
                logger.warning("loan_warning_persist_failed", borrower=borrower, error=str(exc))

        alert = evaluate_loan_health(borrower, health_factor, self._config)
        if alert is not None:
            await self._dispatcher.send(alert)
        return health
