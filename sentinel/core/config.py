"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class NetworkConfig(BaseModel):
    """Chain connectivity and contract addresses."""

    name: str = "testnet"
    rpc_url: str = "https://testnet.hashio.io/api"
    mirror_node_url: str = "https://testnet.mirrornode.hedera.com"
    admin_private_key: SecretStr = SecretStr("")
    pool_address: str = ""
    oracle_address: str = ""
    staking_address: str = ""
    price_oracle_address: str = ""
    supply_decimals: int = 18
    price_decimals: int = 8
    staking_decimals: int = 18
    request_timeout_secs: float = 10.0


class MonitorConfig(BaseModel):
    """Supervisor cadence, probe timeouts and emergency controls."""

    health_check_interval_secs: float = 30.0
    metrics_interval_secs: float = 60.0
    event_poll_interval_secs: float = 15.0
    probe_timeout_secs: float = 5.0
    service_timeout_secs: float = 3.0
    liquidation_bot_health_url: str = ""
    hcs_service_health_url: str = ""
    staking_service_health_url: str = ""
    auto_pause_enabled: bool = False
    pause_receipt_timeout_secs: float = 120.0
    shutdown_grace_secs: float = 10.0
    status_log_interval_secs: float = 300.0


class ThresholdsConfig(BaseModel):
    """Alerting limits applied by the threshold evaluator."""

    min_health_factor: float = 1.2
    max_utilization: float = 0.95
    max_pending_liquidations: int = 50
    large_liquidation_usd: float = 10_000.0
    max_price_change_percent: float = 20.0


class EmailConfig(BaseModel):
    """SMTP relay used by the email channel."""

    enabled: bool = False
    host: str = ""
    port: int = 587
    secure: bool = False
    username: str = ""
    password: SecretStr = SecretStr("")
    sender: str = "alerts@dera.fi"
    recipients: list[str] = []


class TelegramConfig(BaseModel):
    """Telegram bot alert configuration."""

    enabled: bool = False
    bot_token: SecretStr = SecretStr("")
    chat_id: str = ""


class WebhookConfig(BaseModel):
    """Generic webhook alert configuration."""

    enabled: bool = False
    url: SecretStr = SecretStr("")
    service_name: str = "dera-monitoring"


class AlertsConfig(BaseModel):
    """Alert dispatch configuration."""

    history_size: int = Field(1000, ge=1, le=1000)
    channel_timeout_secs: float = 10.0
    email: EmailConfig = EmailConfig()
    telegram: TelegramConfig = TelegramConfig()
    webhook: WebhookConfig = WebhookConfig()


class LiquidationConfig(BaseModel):
    """Per-borrower health scan configuration."""

    enabled: bool = False
    check_interval_secs: float = 3600.0
    liquidation_threshold: float = 1.0
    warning_threshold: float = 1.2
    max_concurrency: int = 5
    store_url: str = ""
    store_api_key: SecretStr = SecretStr("")


class PriceFeedConfig(BaseModel):
    """Off-chain price source feeding the on-chain oracle."""

    enabled: bool = False
    update_interval_secs: float = 300.0
    source_url: str = "https://api.saucerswap.finance/v1"
    token: str = "HBAR"
    gas_limit: int = 100_000


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    network: NetworkConfig = NetworkConfig()
    monitor: MonitorConfig = MonitorConfig()
    thresholds: ThresholdsConfig = ThresholdsConfig()
    alerts: AlertsConfig = AlertsConfig()
    liquidation: LiquidationConfig = LiquidationConfig()
    price_feed: PriceFeedConfig = PriceFeedConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
