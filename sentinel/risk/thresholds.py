"""Pure evaluation functions — snapshots, check results and prices in, verdicts out.

Nothing here performs I/O. Each function maps its input to alerts (or a
verdict) deterministically so the supervisor, the liquidation loop and the
price updater all share the same evaluate-then-act shape.
"""

from __future__ import annotations

from decimal import Decimal

from sentinel.core.config import LiquidationConfig, ThresholdsConfig
from sentinel.core.types import (
    Alert,
    AlertLevel,
    CheckResult,
    LoanHealth,
    MetricsSnapshot,
    PriceVerdict,
    Severity,
)

# ── Protocol metrics ────────────────────────────────────────────


def evaluate_metrics(snapshot: MetricsSnapshot, thresholds: ThresholdsConfig) -> list[Alert]:
    """Compare a metrics snapshot against the configured limits.

    - average health factor below the minimum → CRITICAL, triggers action
    - any asset above the utilization limit → one WARNING per asset
    - pending liquidations above the limit → CRITICAL, no action
    """
    alerts: list[Alert] = []

    min_hf = Decimal(str(thresholds.min_health_factor))
    if snapshot.average_health_factor < min_hf:
        alerts.append(Alert(
            level=AlertLevel.CRITICAL,
            title="Low Average Health Factor",
            message=(
                f"Average health factor is {snapshot.average_health_factor}"
                f" (minimum {min_hf})"
            ),
            detail={
                "average_health_factor": str(snapshot.average_health_factor),
                "threshold": str(min_hf),
            },
            trigger_action=True,
            source="metrics",
        ))

    max_util = Decimal(str(thresholds.max_utilization))
    for asset, utilization in snapshot.utilization_by_asset.items():
        if utilization > max_util:
            alerts.append(Alert(
                level=AlertLevel.WARNING,
                title="High Utilization",
                message=f"Asset {asset} utilization is {utilization * 100:.2f}%",
                detail={
                    "asset": asset,
                    "utilization": str(utilization),
                    "threshold": str(max_util),
                },
                source="metrics",
            ))

    if snapshot.pending_liquidations > thresholds.max_pending_liquidations:
        alerts.append(Alert(
            level=AlertLevel.CRITICAL,
            title="High Pending Liquidations",
            message=f"{snapshot.pending_liquidations} positions pending liquidation",
            detail={
                "pending_liquidations": snapshot.pending_liquidations,
                "threshold": thresholds.max_pending_liquidations,
            },
            source="metrics",
        ))

    return alerts


# ── Health checks ───────────────────────────────────────────────


def evaluate_checks(results: list[CheckResult]) -> list[Alert]:
    """Forward unhealthy CRITICAL/WARNING check results as alerts.

    Healthy results and INFO-severity results produce nothing. A CRITICAL
    result keeps its ``trigger_action`` flag; WARNING results never act.
    """
    alerts: list[Alert] = []
    for result in results:
        if result.healthy:
            continue
        if result.severity == Severity.CRITICAL:
            alerts.append(Alert(
                level=AlertLevel.CRITICAL,
                title=f"{result.name} Critical",
                message=result.message,
                detail=dict(result.detail),
                trigger_action=result.trigger_action,
                source=f"check:{result.name}",
            ))
        elif result.severity == Severity.WARNING:
            alerts.append(Alert(
                level=AlertLevel.WARNING,
                title=f"{result.name} Warning",
                message=result.message,
                detail=dict(result.detail),
                source=f"check:{result.name}",
            ))
    return alerts


# ── Borrower health ─────────────────────────────────────────────


def classify_health_factor(health_factor: Decimal, config: LiquidationConfig) -> LoanHealth:
    """Bucket a borrower's health factor against the two thresholds."""
    if health_factor < Decimal(str(config.liquidation_threshold)):
        return LoanHealth.LIQUIDATABLE
    if health_factor < Decimal(str(config.warning_threshold)):
        return LoanHealth.WARNING
    return LoanHealth.HEALTHY


def evaluate_loan_health(
    borrower: str,
    health_factor: Decimal,
    config: LiquidationConfig,
) -> Alert | None:
    """Alert for one borrower, or None when the position is healthy."""
    health = classify_health_factor(health_factor, config)
    if health == LoanHealth.LIQUIDATABLE:
        return Alert(
            level=AlertLevel.CRITICAL,
            title="Loan Liquidatable",
            message=(
                f"Borrower {borrower} health factor {health_factor}"
                f" is below {config.liquidation_threshold}"
            ),
            detail={"borrower": borrower, "health_factor": str(health_factor)},
            source="liquidation",
        )
    if health == LoanHealth.WARNING:
        return Alert(
            level=AlertLevel.WARNING,
            title="Loan Near Liquidation",
            message=(
                f"Borrower {borrower} health factor {health_factor}"
                f" is below {config.warning_threshold}"
            ),
            detail={"borrower": borrower, "health_factor": str(health_factor)},
            source="liquidation",
        )
    return None


# ── Price circuit breaker ───────────────────────────────────────


def check_price_change(
    last_price: int | None,
    new_price: int,
    max_change_percent: float,
) -> PriceVerdict:
    """Accept or reject a freshly fetched price against the last accepted one.

    The first price is accepted unconditionally; a non-positive price never is.
    """
    if new_price <= 0:
        return PriceVerdict(
            accepted=False,
            new_price=new_price,
            last_price=last_price,
            reason=f"Non-positive price {new_price}",
        )
    if last_price is None or last_price <= 0:
        return PriceVerdict(accepted=True, new_price=new_price, last_price=last_price)

    change_pct = abs(Decimal(new_price - last_price)) / Decimal(last_price) * 100
    limit = Decimal(str(max_change_percent))
    if change_pct > limit:
        return PriceVerdict(
            accepted=False,
            new_price=new_price,
            last_price=last_price,
            change_pct=change_pct,
            reason=f"Price change {change_pct:.2f}% exceeds {limit}% limit",
        )
    return PriceVerdict(
        accepted=True,
        new_price=new_price,
        last_price=last_price,
        change_pct=change_pct,
    )
