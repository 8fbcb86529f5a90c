"""Alerting and metrics — channels, dispatcher and the metrics snapshot builder."""

from sentinel.monitor.channels import (
    EmailChannel,
    NotificationChannel,
    TelegramChannel,
    WebhookChannel,
)
from sentinel.monitor.dispatcher import AlertDispatcher
from sentinel.monitor.factory import build_channels, create_monitor_stack
from sentinel.monitor.metrics import (
    PLACEHOLDER_AVERAGE_HEALTH_FACTOR,
    PLACEHOLDER_PENDING_LIQUIDATIONS,
    ProtocolMetricsCollector,
)

__all__ = [
    "AlertDispatcher",
    "EmailChannel",
    "NotificationChannel",
    "PLACEHOLDER_AVERAGE_HEALTH_FACTOR",
    "PLACEHOLDER_PENDING_LIQUIDATIONS",
    "ProtocolMetricsCollector",
    "TelegramChannel",
    "WebhookChannel",
    "build_channels",
    "create_monitor_stack",
]
