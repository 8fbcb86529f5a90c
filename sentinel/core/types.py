"""Domain types for the protocol sentinel — all monetary values use Decimal."""

from __future__ import annotations

import time
from decimal import Decimal
from enum import IntEnum, StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ── Health checks ────────────────────────────────────────────────


class CheckStatus(StrEnum):
    """Outcome of a single probe."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class Severity(IntEnum):
    """Probe severity — ordered so comparisons work naturally."""

    INFO = 1
    WARNING = 2
    CRITICAL = 3


class CheckResult(BaseModel):
    """Result of one probe, produced fresh every check cycle."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: CheckStatus
    severity: Severity = Severity.INFO
    message: str = ""
    detail: dict[str, Any] = Field(default_factory=dict)
    trigger_action: bool = False

    @property
    def healthy(self) -> bool:
        return self.status == CheckStatus.HEALTHY


# ── Alerts ───────────────────────────────────────────────────────


class AlertLevel(IntEnum):
    """Alert level — EMERGENCY is reserved for automated protective actions."""

    INFO = 1
    WARNING = 2
    CRITICAL = 3
    EMERGENCY = 4


class Alert(BaseModel):
    """Normalised alert ready for dispatch to channels."""

    model_config = ConfigDict(frozen=True)

    level: AlertLevel
    title: str
    message: str = ""
    detail: dict[str, Any] = Field(default_factory=dict)
    trigger_action: bool = False
    source: str = ""
    emitted_at: float = Field(default_factory=time.time)


# ── Metrics ──────────────────────────────────────────────────────


class MetricsSnapshot(BaseModel):
    """Protocol-wide numeric state captured in one collection cycle."""

    model_config = ConfigDict(frozen=True)

    total_value_locked: Decimal = Decimal(0)
    total_borrowed: Decimal = Decimal(0)
    utilization_by_asset: dict[str, Decimal] = Field(default_factory=dict)
    average_health_factor: Decimal = Decimal(0)
    pending_liquidations: int = 0
    captured_at: float = Field(default_factory=time.time)


# ── Chain reads ──────────────────────────────────────────────────


class AssetData(BaseModel):
    """Raw supply/borrow totals for one reserve, in token base units."""

    total_supply: int
    total_borrow: int


class StakingInfo(BaseModel):
    """Aggregate staking contract state, in base units."""

    currently_staked: int
    total_rewards: int = 0


class ProtocolEventType(StrEnum):
    """On-chain notifications the supervisor subscribes to."""

    PAUSED = "Paused"
    UNPAUSED = "Unpaused"
    LIQUIDATION_CALL = "LiquidationCall"


class ProtocolEvent(BaseModel):
    """A decoded pool event."""

    event_type: ProtocolEventType
    block_number: int = 0
    tx_hash: str = ""
    args: dict[str, Any] = Field(default_factory=dict)
    received_at: float = Field(default_factory=time.time)


# ── Emergency action ─────────────────────────────────────────────


class EmergencyOutcome(StrEnum):
    """Result of an emergency pause attempt."""

    SKIPPED = "SKIPPED"
    ALREADY_PAUSED = "ALREADY_PAUSED"
    PAUSED = "PAUSED"
    FAILED = "FAILED"


class EmergencyResult(BaseModel):
    """Outcome of ``EmergencyActionExecutor.maybe_act``."""

    outcome: EmergencyOutcome
    reason: str = ""
    tx_hash: str = ""
    error: str = ""


# ── Supervisor ───────────────────────────────────────────────────


class ServiceState(StrEnum):
    """Lifecycle state of the monitoring supervisor."""

    STOPPED = "STOPPED"
    INITIALIZING = "INITIALIZING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


# ── Price circuit breaker ────────────────────────────────────────


class PriceVerdict(BaseModel):
    """Decision of the price-update circuit breaker."""

    accepted: bool
    new_price: int
    last_price: int | None = None
    change_pct: Decimal = Decimal(0)
    reason: str = ""


# ── Liquidation scan ─────────────────────────────────────────────


class LoanStatus(StrEnum):
    """Loan lifecycle states written by the liquidation loop."""

    ACTIVE = "active"
    PENDING_LIQUIDATION = "pending_liquidation"


class Loan(BaseModel):
    """An active loan as read from the loan store."""

    borrower: str
    status: LoanStatus = LoanStatus.ACTIVE
    health_factor: Decimal | None = None


class LoanHealth(StrEnum):
    """Classification of a borrower's health factor."""

    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    LIQUIDATABLE = "LIQUIDATABLE"
