"""MonitoringService — the supervisor that owns every loop and the pause path.

Lifecycle::

    STOPPED → INITIALIZING → RUNNING → STOPPING → STOPPED

``start()`` wires remote connections (fatal on failure), runs one health
check and one metrics cycle immediately, then hands over to two periodic
timers, the on-chain event feed and a status logger. ``stop()`` lets
in-flight cycles settle within the configured grace period, tears the
loops down and reports a final status.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from sentinel.chain.contracts import ProtocolContracts
from sentinel.chain.events import ProtocolEventFeed
from sentinel.chain.mirror import MirrorNodeClient
from sentinel.chain.web3_contracts import Web3ProtocolContracts
from sentinel.core.config import Settings
from sentinel.core.periodic import PeriodicTask
from sentinel.core.types import (
    Alert,
    AlertLevel,
    CheckResult,
    CheckStatus,
    MetricsSnapshot,
    ProtocolEvent,
    ServiceState,
)
from sentinel.monitor.dispatcher import AlertDispatcher
from sentinel.monitor.formatters import format_protocol_event, liquidation_debt_usd
from sentinel.monitor.metrics import ProtocolMetricsCollector
from sentinel.probes.registry import CheckRegistry, build_default_registry
from sentinel.risk.circuit_breaker import PriceOracleUpdater, SaucerSwapPriceSource
from sentinel.risk.emergency import EmergencyActionExecutor
from sentinel.risk.exceptions import InitializationError, InvalidStateError
from sentinel.risk.liquidation import LiquidationMonitor, LoanStore, SupabaseLoanStore
from sentinel.risk.thresholds import evaluate_checks, evaluate_metrics

logger = structlog.stdlib.get_logger()


class MonitoringService:
    """Supervises health checks, metrics, on-chain events and emergency action.

    Collaborators not passed in are built from *settings* during
    ``start()``. Tests inject fakes for the contracts, registry and loan
    store to run the full cycle without a network.

    Usage::

        service = MonitoringService(settings, dispatcher)
        await service.start()
        ...
        await service.stop()
    """

    def __init__(
        self,
        settings: Settings,
        dispatcher: AlertDispatcher,
        *,
        contracts: ProtocolContracts | None = None,
        mirror: MirrorNodeClient | None = None,
        http: httpx.AsyncClient | None = None,
        registry: CheckRegistry | None = None,
        loan_store: LoanStore | None = None,
        price_source: SaucerSwapPriceSource | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._dispatcher = dispatcher
        self._clock = clock
        monitor = settings.monitor

        self._contracts = contracts or Web3ProtocolContracts(settings.network)
        self._mirror = mirror or MirrorNodeClient(
            settings.network.mirror_node_url, timeout_secs=monitor.probe_timeout_secs,
        )
        self._http = http
        self._owns_http = http is None
        self._registry = registry
        self._owns_registry = registry is None
        self._loan_store = loan_store
        self._price_source = price_source

        self._collector = ProtocolMetricsCollector(
            self._contracts,
            supply_decimals=settings.network.supply_decimals,
            price_decimals=settings.network.price_decimals,
            timeout_secs=monitor.probe_timeout_secs,
            clock=clock,
        )
        self._executor = EmergencyActionExecutor(
            self._contracts,
            dispatcher,
            auto_pause_enabled=monitor.auto_pause_enabled,
            receipt_timeout_secs=monitor.pause_receipt_timeout_secs,
        )
        self._event_feed = ProtocolEventFeed(
            self._contracts, poll_interval_secs=monitor.event_poll_interval_secs,
        )
        self._liquidation_monitor: LiquidationMonitor | None = None
        self._price_updater: PriceOracleUpdater | None = None

        self._health_task = PeriodicTask(
            "health_check",
            self._health_tick,
            monitor.health_check_interval_secs,
            run_immediately=False,
        )
        self._metrics_task = PeriodicTask(
            "metrics",
            self._metrics_tick,
            monitor.metrics_interval_secs,
            run_immediately=False,
        )
        self._status_task = PeriodicTask(
            "status_log",
            self._log_status,
            monitor.status_log_interval_secs,
            run_immediately=False,
        )

        # One pause attempt at a time; the paused-flag read inside the
        # executor is what makes repeated attempts harmless.
        self._action_lock = asyncio.Lock()

        self._state = ServiceState.STOPPED
        self._started_at: float | None = None
        self._last_check_at: float | None = None
        self._last_results: list[CheckResult] = []

    # ── Properties ──────────────────────────────────────────────

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def dispatcher(self) -> AlertDispatcher:
        return self._dispatcher

    @property
    def executor(self) -> EmergencyActionExecutor:
        return self._executor

    @property
    def event_feed(self) -> ProtocolEventFeed:
        return self._event_feed

    @property
    def last_results(self) -> list[CheckResult]:
        return list(self._last_results)

    def get_latest(self) -> MetricsSnapshot | None:
        """Most recent successful metrics snapshot."""
        return self._collector.get_latest()

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        if self._state == ServiceState.RUNNING:
            return
        if self._state != ServiceState.STOPPED:
            raise InvalidStateError(f"Cannot start from state {self._state}")

        await self._initialize()

        self._started_at = self._clock()
        self._state = ServiceState.RUNNING

        # Health is known at t=0, not only after the first interval.
        await self._health_task.run_once()
        await self._metrics_task.run_once()

        self._health_task.start()
        self._metrics_task.start()
        self._status_task.start()

        self._event_feed.on_event(self.on_protocol_event)
        await self._event_feed.start()

        if self._liquidation_monitor is not None:
            await self._liquidation_monitor.start()
        if self._price_updater is not None:
            await self._price_updater.start()

        logger.info(
            "monitoring_service_started",
            network=self._settings.network.name,
            probes=len(self._registry or ()),
            auto_pause=self._executor.auto_pause_enabled,
        )
        await self._dispatcher.send(Alert(
            level=AlertLevel.INFO,
            title="Monitoring Service Started",
            message=f"Dera protocol monitoring is active on {self._settings.network.name}",
            detail={"auto_pause_enabled": self._executor.auto_pause_enabled},
            source="service",
        ))

    async def stop(self) -> None:
        if self._state != ServiceState.RUNNING:
            return
        self._state = ServiceState.STOPPING
        grace = self._settings.monitor.shutdown_grace_secs
        logger.info("monitoring_service_stopping", grace_secs=grace)

        await asyncio.gather(
            self._health_task.stop(grace),
            self._metrics_task.stop(grace),
            self._status_task.stop(grace),
        )
        await self._event_feed.stop(grace)

        if self._liquidation_monitor is not None:
            await self._liquidation_monitor.stop(grace)
        if self._price_updater is not None:
            await self._price_updater.stop(grace)

        await self._dispatcher.send(Alert(
            level=AlertLevel.INFO,
            title="Monitoring Service Stopped",
            message="Dera protocol monitoring has been shut down",
            source="service",
        ))
        logger.info("monitoring_service_final_status", **self.status())

        await self._release()
        self._state = ServiceState.STOPPED
        logger.info("monitoring_service_stopped")

    async def _initialize(self) -> None:
        self._state = ServiceState.INITIALIZING
        logger.info("monitoring_service_initializing", network=self._settings.network.name)
        try:
            await self._contracts.connect()
            await self._mirror.connect()
            if self._http is None:
                self._http = httpx.AsyncClient(
                    timeout=httpx.Timeout(self._settings.monitor.service_timeout_secs),
                )
            if self._registry is None:
                self._registry = build_default_registry(
                    self._contracts,
                    self._mirror,
                    self._http,
                    self._settings.monitor,
                    self._settings.network,
                )
            self._build_companions()
        except asyncio.CancelledError:
            logger.warning("monitoring_service_init_cancelled")
            await self._release()
            self._state = ServiceState.STOPPED
            raise
        except Exception as exc:
            logger.error("monitoring_service_init_failed", error=str(exc))
            await self._release()
            self._state = ServiceState.STOPPED
            raise InitializationError(f"Initialization failed: {exc}") from exc

    def _build_companions(self) -> None:
        settings = self._settings

        liq = settings.liquidation
        if liq.enabled:
            store = self._loan_store
            if store is None and liq.store_url:
                store = SupabaseLoanStore(
                    liq.store_url,
                    liq.store_api_key.get_secret_value(),
                    timeout_secs=settings.network.request_timeout_secs,
                )
            if store is None:
                raise InitializationError("liquidation.store_url is required when enabled")
            self._liquidation_monitor = LiquidationMonitor(
                self._contracts,
                store,
                self._dispatcher,
                liq,
                read_timeout_secs=settings.network.request_timeout_secs,
                clock=self._clock,
            )

        feed = settings.price_feed
        if feed.enabled:
            source = self._price_source or SaucerSwapPriceSource(
                feed.source_url, timeout_secs=settings.network.request_timeout_secs,
            )
            self._price_updater = PriceOracleUpdater(
                self._contracts,
                source,
                feed,
                settings.thresholds.max_price_change_percent,
                price_decimals=settings.network.price_decimals,
                receipt_timeout_secs=settings.monitor.pause_receipt_timeout_secs,
                dispatcher=self._dispatcher,
            )

    async def _release(self) -> None:
        if self._owns_registry:
            self._registry = None
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
        for name, close in (("mirror", self._mirror.close), ("contracts", self._contracts.close)):
            try:
                await close()
            except Exception:
                logger.exception("resource_close_error", resource=name)

    # ── Cycles ──────────────────────────────────────────────────

    async def _health_tick(self) -> None:
        await self.run_health_check()

    async def _metrics_tick(self) -> None:
        await self.collect_metrics()

    async def run_health_check(self) -> list[CheckResult]:
        """Run every probe, forward what is unhealthy, act on critical alerts."""
        if self._registry is None:
            raise InvalidStateError("Service is not initialized")

        results = await self._registry.run_all()
        self._last_results = results
        self._last_check_at = self._clock()

        alerts = evaluate_checks(results)
        logger.info(
            "health_check_completed",
            healthy=sum(1 for r in results if r.healthy),
            unhealthy=sum(1 for r in results if r.status == CheckStatus.UNHEALTHY),
            alerts=len(alerts),
        )
        await self._handle_alerts(alerts)
        return results

    async def collect_metrics(self) -> MetricsSnapshot | None:
        """Collect a snapshot and evaluate it; a stale fallback is not re-evaluated."""
        previous = self._collector.get_latest()
        snapshot = await self._collector.collect()
        if snapshot is None or snapshot is previous:
            logger.warning("metrics_unavailable", has_previous=previous is not None)
            return snapshot

        alerts = evaluate_metrics(snapshot, self._settings.thresholds)
        logger.info(
            "metrics_collected",
            tvl=str(snapshot.total_value_locked),
            borrowed=str(snapshot.total_borrowed),
            assets=len(snapshot.utilization_by_asset),
            alerts=len(alerts),
        )
        await self._handle_alerts(alerts)
        return snapshot

    async def _handle_alerts(self, alerts: list[Alert]) -> None:
        for alert in alerts:
            await self._dispatcher.send(alert)
            if alert.level >= AlertLevel.CRITICAL:
                async with self._action_lock:
                    await self._executor.maybe_act(alert)

    async def on_protocol_event(self, event: ProtocolEvent) -> None:
        """Push-path handler for pool events."""
        alert = format_protocol_event(
            event,
            self._settings.thresholds.large_liquidation_usd,
            self._settings.network.supply_decimals,
        )
        if alert is None:
            logger.info(
                "liquidation_observed",
                user=event.args.get("user"),
                debt=str(liquidation_debt_usd(event, self._settings.network.supply_decimals)),
                tx_hash=event.tx_hash,
            )
            return
        await self._dispatcher.send(alert)

    # ── Status ──────────────────────────────────────────────────

    def status(self) -> dict[str, Any]:
        """Point-in-time view of the supervisor for logs and operators."""
        now = self._clock()
        counters = self._dispatcher.counters
        latest = self._collector.get_latest()
        return {
            "state": str(self._state),
            "started_at": self._started_at,
            "uptime_secs": round(now - self._started_at, 1) if self._started_at else 0.0,
            "last_check_at": self._last_check_at,
            "services_up": sum(1 for r in self._last_results if r.healthy),
            "services_down": sum(
                1 for r in self._last_results if r.status == CheckStatus.UNHEALTHY
            ),
            "services_unknown": sum(
                1 for r in self._last_results if r.status == CheckStatus.UNKNOWN
            ),
            "total_alerts": self._dispatcher.total_sent,
            "critical_alerts": (
                counters[AlertLevel.CRITICAL] + counters[AlertLevel.EMERGENCY]
            ),
            "alert_counts": {level.name: n for level, n in counters.items()},
            "health_checks_run": self._health_task.run_count,
            "metrics_runs": self._metrics_task.run_count,
            "events_seen": self._event_feed.event_count,
            "pause_submissions": self._executor.pause_submissions,
            "metrics": latest.model_dump(mode="json") if latest else None,
        }

    async def _log_status(self) -> None:
        logger.info("monitoring_service_status", **self.status())
