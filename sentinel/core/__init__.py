"""Core module — config, types, logging, periodic scheduling."""

from sentinel.core.config import Settings, get_settings, load_settings, reset_settings
from sentinel.core.logging import setup_logging
from sentinel.core.periodic import PeriodicTask
from sentinel.core.types import (
    Alert,
    AlertLevel,
    CheckResult,
    CheckStatus,
    EmergencyOutcome,
    EmergencyResult,
    MetricsSnapshot,
    ProtocolEvent,
    ProtocolEventType,
    ServiceState,
    Severity,
)

__all__ = [
    "Alert",
    "AlertLevel",
    "CheckResult",
    "CheckStatus",
    "EmergencyOutcome",
    "EmergencyResult",
    "MetricsSnapshot",
    "PeriodicTask",
    "ProtocolEvent",
    "ProtocolEventType",
    "ServiceState",
    "Settings",
    "Severity",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
