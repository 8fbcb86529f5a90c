"""Convenience factory for wiring the alerting stack."""

from __future__ import annotations

from sentinel.core.config import AlertsConfig
from sentinel.monitor.channels import (
    EmailChannel,
    NotificationChannel,
    TelegramChannel,
    WebhookChannel,
)
from sentinel.monitor.dispatcher import AlertDispatcher


def build_channels(config: AlertsConfig) -> list[NotificationChannel]:
    """Instantiate every channel whose section is enabled."""
    channels: list[NotificationChannel] = []

    if config.email.enabled:
        channels.append(EmailChannel(config.email))

    if config.telegram.enabled:
        channels.append(TelegramChannel(config.telegram))

    if config.webhook.enabled and config.webhook.url.get_secret_value():
        channels.append(WebhookChannel(config.webhook))

    return channels


def create_monitor_stack(config: AlertsConfig) -> AlertDispatcher:
    """Build a dispatcher with its configured channels."""
    return AlertDispatcher(
        channels=build_channels(config),
        history_size=config.history_size,
        channel_timeout_secs=config.channel_timeout_secs,
    )
