"""Evaluation, emergency action and the companion risk loops."""

from sentinel.risk.circuit_breaker import PriceOracleUpdater, SaucerSwapPriceSource
from sentinel.risk.emergency import EmergencyActionExecutor
from sentinel.risk.exceptions import (
    InitializationError,
    InvalidStateError,
    LoanStoreError,
    PriceSourceError,
    SentinelError,
)
from sentinel.risk.liquidation import LiquidationMonitor, LoanStore, SupabaseLoanStore
from sentinel.risk.thresholds import (
    check_price_change,
    classify_health_factor,
    evaluate_checks,
    evaluate_loan_health,
    evaluate_metrics,
)

__all__ = [
    "EmergencyActionExecutor",
    "InitializationError",
    "InvalidStateError",
    "LiquidationMonitor",
    "LoanStore",
    "LoanStoreError",
    "PriceOracleUpdater",
    "PriceSourceError",
    "SaucerSwapPriceSource",
    "SentinelError",
    "SupabaseLoanStore",
    "check_price_change",
    "classify_health_factor",
    "evaluate_checks",
    "evaluate_loan_health",
    "evaluate_metrics",
]
