"""Remote probes — each queries one dependency and returns a CheckResult.

Probes never raise. Any exception, timeout or unexpected payload is folded
into a ``CheckResult`` whose status is not HEALTHY, so one dependency being
down cannot crash the check cycle or block its siblings.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from decimal import Decimal

import httpx
import structlog

from sentinel.chain.contracts import ProtocolContracts
from sentinel.chain.exceptions import ChainCallError
from sentinel.chain.mirror import MirrorNodeClient
from sentinel.core.types import CheckResult, CheckStatus, Severity

logger = structlog.stdlib.get_logger()

ProbeFn = Callable[[], Awaitable[CheckResult]]
FailureFn = Callable[[Exception], CheckResult]

POOL = "Pool Contract"
ORACLE = "Oracle"
STAKING = "Staking Contract"
LIQUIDATION_BOT = "Liquidation Bot"
HCS_SERVICE = "HCS Service"
STAKING_SERVICE = "Staking Service"
RPC = "RPC Endpoint"
MIRROR_NODE = "Mirror Node"


def describe_error(exc: BaseException) -> str:
    """Human-readable error text, including for message-less timeouts."""
    if isinstance(exc, TimeoutError):
        return "timed out"
    return str(exc) or type(exc).__name__


async def run_guarded(
    name: str,
    probe: Awaitable[CheckResult],
    timeout_secs: float,
    on_failure: FailureFn,
) -> CheckResult:
    """Await *probe* within *timeout_secs*, mapping any failure to a result."""
    try:
        return await asyncio.wait_for(probe, timeout=timeout_secs)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("probe_failed", probe=name, error=describe_error(exc))
        return on_failure(exc)


def _failure(
    name: str,
    message: str,
    severity: Severity,
    *,
    status: CheckStatus = CheckStatus.UNHEALTHY,
    trigger_action: bool = False,
) -> FailureFn:
    def build(exc: Exception) -> CheckResult:
        return CheckResult(
            name=name,
            status=status,
            severity=severity,
            message=message,
            detail={"error": describe_error(exc)},
            trigger_action=trigger_action,
        )

    return build


# ── Contract probes ──────────────────────────────────────────────


async def check_pool(contracts: ProtocolContracts, timeout_secs: float) -> CheckResult:
    """Pool pause flag and asset list."""

    async def probe() -> CheckResult:
        if await contracts.is_paused():
            return CheckResult(
                name=POOL,
                status=CheckStatus.UNHEALTHY,
                severity=Severity.CRITICAL,
                message="Protocol is paused",
            )
        assets = await contracts.list_assets()
        return CheckResult(
            name=POOL,
            status=CheckStatus.HEALTHY,
            message=f"{len(assets)} assets configured",
            detail={"assets": len(assets)},
        )

    return await run_guarded(
        POOL,
        probe(),
        timeout_secs,
        _failure(POOL, "Unable to query Pool contract", Severity.CRITICAL),
    )


async def check_oracle(contracts: ProtocolContracts, timeout_secs: float) -> CheckResult:
    """Oracle price for the first configured asset; zero means a broken feed."""

    async def probe() -> CheckResult:
        assets = await contracts.list_assets()
        if not assets:
            return CheckResult(
                name=ORACLE,
                status=CheckStatus.HEALTHY,
                message="No assets to check prices for",
            )
        asset = assets[0]
        price = await contracts.asset_price(asset)
        if price == 0:
            return CheckResult(
                name=ORACLE,
                status=CheckStatus.UNHEALTHY,
                severity=Severity.CRITICAL,
                message=f"Zero price returned for {asset}",
                detail={"asset": asset},
                trigger_action=True,
            )
        return CheckResult(
            name=ORACLE,
            status=CheckStatus.HEALTHY,
            message="Oracle responding correctly",
            detail={"asset": asset, "price": price},
        )

    return await run_guarded(
        ORACLE,
        probe(),
        timeout_secs,
        _failure(ORACLE, "Oracle not responding", Severity.CRITICAL, trigger_action=True),
    )


async def check_staking(
    contracts: ProtocolContracts,
    timeout_secs: float,
    decimals: int = 18,
) -> CheckResult:
    """Staking contract aggregate read."""

    async def probe() -> CheckResult:
        info = await contracts.staking_info()
        staked = Decimal(info.currently_staked).scaleb(-decimals)
        return CheckResult(
            name=STAKING,
            status=CheckStatus.HEALTHY,
            message=f"{staked.normalize():f} HBAR staked",
            detail={"currently_staked": str(staked)},
        )

    return await run_guarded(
        STAKING,
        probe(),
        timeout_secs,
        _failure(STAKING, "Unable to query Staking contract", Severity.WARNING),
    )


async def check_rpc(contracts: ProtocolContracts, timeout_secs: float) -> CheckResult:
    """Node liveness via the latest block number."""

    async def probe() -> CheckResult:
        block = await contracts.latest_block()
        if not block:
            return CheckResult(
                name=RPC,
                status=CheckStatus.UNHEALTHY,
                severity=Severity.CRITICAL,
                message="RPC not returning block number",
                trigger_action=True,
            )
        return CheckResult(
            name=RPC,
            status=CheckStatus.HEALTHY,
            message=f"Block: {block}",
            detail={"block": block},
        )

    return await run_guarded(
        RPC,
        probe(),
        timeout_secs,
        _failure(RPC, "RPC endpoint not responding", Severity.CRITICAL, trigger_action=True),
    )


# ── HTTP probes ──────────────────────────────────────────────────


async def service_is_up(http: httpx.AsyncClient, url: str, timeout_secs: float) -> bool:
    """GET *url* and expect 200 within *timeout_secs*."""
    try:
        response = await http.get(url, timeout=timeout_secs)
    except httpx.HTTPError:
        return False
    return response.status_code == 200


async def check_service(
    name: str,
    url: str,
    http: httpx.AsyncClient,
    timeout_secs: float,
    down_severity: Severity = Severity.WARNING,
) -> CheckResult:
    """Liveness of a sibling service through its own health endpoint."""
    if not url:
        return CheckResult(
            name=name,
            status=CheckStatus.UNKNOWN,
            message="Health endpoint not configured",
        )

    async def probe() -> CheckResult:
        if not await service_is_up(http, url, timeout_secs):
            return CheckResult(
                name=name,
                status=CheckStatus.UNHEALTHY,
                severity=down_severity,
                message=f"{name} is not responding",
                detail={"url": url},
            )
        return CheckResult(
            name=name,
            status=CheckStatus.HEALTHY,
            message="Service operational",
        )

    # The outer bound only trips if the client ignores its own timeout.
    return await run_guarded(
        name,
        probe(),
        timeout_secs + 1.0,
        _failure(
            name,
            "Unable to check service status",
            Severity.WARNING,
            status=CheckStatus.UNKNOWN,
        ),
    )


async def check_mirror_node(mirror: MirrorNodeClient, timeout_secs: float) -> CheckResult:
    """Indexer liveness via the network nodes listing and the newest block."""

    async def probe() -> CheckResult:
        try:
            nodes = await mirror.network_nodes()
            block = await mirror.latest_block()
        except ChainCallError as exc:
            return CheckResult(
                name=MIRROR_NODE,
                status=CheckStatus.UNHEALTHY,
                severity=Severity.WARNING,
                message=str(exc),
            )
        return CheckResult(
            name=MIRROR_NODE,
            status=CheckStatus.HEALTHY,
            message="Mirror Node API responding",
            detail={"nodes": len(nodes), "latest_block": block.get("number")},
        )

    return await run_guarded(
        MIRROR_NODE,
        probe(),
        timeout_secs,
        _failure(MIRROR_NODE, "Mirror Node not responding", Severity.WARNING),
    )
