"""CheckRegistry — a fixed, ordered list of named probes run concurrently."""

from __future__ import annotations

import asyncio
from functools import partial

import httpx
import structlog

from sentinel.chain.contracts import ProtocolContracts
from sentinel.chain.mirror import MirrorNodeClient
from sentinel.core.config import MonitorConfig, NetworkConfig
from sentinel.core.types import CheckResult, CheckStatus, Severity
from sentinel.probes import probes
from sentinel.probes.probes import ProbeFn, describe_error

logger = structlog.stdlib.get_logger()


class CheckRegistry:
    """Holds named probes and runs them all in one cycle.

    Every probe is started at once and the cycle waits for all of them to
    settle; a failing probe never cancels its siblings. Results come back
    in registration order regardless of completion order.
    """

    def __init__(self) -> None:
        self._probes: list[tuple[str, ProbeFn]] = []

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self._probes]

    def __len__(self) -> int:
        return len(self._probes)

    def register(self, name: str, probe: ProbeFn) -> None:
        """Append a probe. Names must be unique."""
        if name in self.names:
            raise ValueError(f"Probe already registered: {name}")
        self._probes.append((name, probe))

    async def run_all(self) -> list[CheckResult]:
        """Run every probe concurrently and return results in order."""
        outcomes = await asyncio.gather(
            *(probe() for _, probe in self._probes),
            return_exceptions=True,
        )

        results: list[CheckResult] = []
        for (name, _), outcome in zip(self._probes, outcomes):
            if isinstance(outcome, CheckResult):
                results.append(outcome)
                continue
            # Probes are expected to fold their own failures; this is the backstop.
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            logger.error(
                "probe_raised",
                probe=name,
                error=describe_error(outcome),  # type: ignore[arg-type]
            )
            results.append(CheckResult(
                name=name,
                status=CheckStatus.UNKNOWN,
                severity=Severity.WARNING,
                message="Probe raised an unexpected error",
                detail={"error": describe_error(outcome)},  # type: ignore[arg-type]
            ))
        return results


def build_default_registry(
    contracts: ProtocolContracts,
    mirror: MirrorNodeClient,
    http: httpx.AsyncClient,
    monitor: MonitorConfig,
    network: NetworkConfig,
) -> CheckRegistry:
    """Register the standard probe set in its documented order.

    Order: pool, oracle, staking, liquidation bot, HCS service, staking
    service, RPC endpoint, mirror node.
    """
    timeout = monitor.probe_timeout_secs
    svc_timeout = monitor.service_timeout_secs

    registry = CheckRegistry()
    registry.register(probes.POOL, partial(probes.check_pool, contracts, timeout))
    registry.register(probes.ORACLE, partial(probes.check_oracle, contracts, timeout))
    registry.register(
        probes.STAKING,
        partial(probes.check_staking, contracts, timeout, network.staking_decimals),
    )
    registry.register(
        probes.LIQUIDATION_BOT,
        partial(
            probes.check_service,
            probes.LIQUIDATION_BOT,
            monitor.liquidation_bot_health_url,
            http,
            svc_timeout,
            Severity.CRITICAL,
        ),
    )
    registry.register(
        probes.HCS_SERVICE,
        partial(
            probes.check_service,
            probes.HCS_SERVICE,
            monitor.hcs_service_health_url,
            http,
            svc_timeout,
        ),
    )
    registry.register(
        probes.STAKING_SERVICE,
        partial(
            probes.check_service,
            probes.STAKING_SERVICE,
            monitor.staking_service_health_url,
            http,
            svc_timeout,
        ),
    )
    registry.register(probes.RPC, partial(probes.check_rpc, contracts, timeout))
    registry.register(
        probes.MIRROR_NODE, partial(probes.check_mirror_node, mirror, timeout),
    )
    return registry
