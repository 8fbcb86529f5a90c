"""Central alert dispatcher — records alerts and fans them out to channels."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any

import structlog

from sentinel.core.types import Alert, AlertLevel
from sentinel.monitor.channels import NotificationChannel
from sentinel.probes.probes import describe_error

# Dedicated structured logger: the always-on alert channel.
alert_logger = structlog.get_logger("alert_log")

logger = structlog.get_logger(__name__)

MAX_HISTORY_SIZE = 1000
DEFAULT_HISTORY_SIZE = MAX_HISTORY_SIZE
RECENT_ALERTS = 10


class AlertDispatcher:
    """Routes alerts to notification channels.

    - Every alert bumps its level counter and enters a capped FIFO history.
    - Every alert is written synchronously to *alert_logger*, whatever
      channels are configured.
    - Channels are then called concurrently, each bounded by
      *channel_timeout_secs*; a failing channel is logged and counted but
      never blocks the others or raises to the caller.
    """

    def __init__(
        self,
        channels: list[NotificationChannel] | None = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
        channel_timeout_secs: float = 10.0,
    ) -> None:
        if not 1 <= history_size <= MAX_HISTORY_SIZE:
            raise ValueError(f"history_size must be between 1 and {MAX_HISTORY_SIZE}")
        self._channels: list[NotificationChannel] = channels or []
        self._channel_timeout_secs = channel_timeout_secs
        self._history: deque[Alert] = deque(maxlen=history_size)
        self._counters: dict[AlertLevel, int] = {level: 0 for level in AlertLevel}
        self._channel_failures: dict[str, int] = {
            self._channel_name(ch): 0 for ch in self._channels
        }

    # ── Accessors ───────────────────────────────────────────────

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    @property
    def counters(self) -> dict[AlertLevel, int]:
        return dict(self._counters)

    @property
    def history(self) -> list[Alert]:
        return list(self._history)

    @property
    def total_sent(self) -> int:
        return sum(self._counters.values())

    def stats(self) -> dict[str, Any]:
        """History size, per-level counts, recent alerts and channel failures."""
        return {
            "total": len(self._history),
            "counts": {level.name: n for level, n in self._counters.items()},
            "recent": [a.model_dump(mode="json") for a in list(self._history)[-RECENT_ALERTS:]],
            "channel_failures": dict(self._channel_failures),
        }

    # ── Dispatch ────────────────────────────────────────────────

    async def send(self, alert: Alert) -> None:
        """Record *alert* and deliver it to every channel. Never raises."""
        self._counters[alert.level] += 1
        self._history.append(alert)
        self._log_alert(alert)
        await self._dispatch_to_channels(alert)

    def _log_alert(self, alert: Alert) -> None:
        if alert.level >= AlertLevel.CRITICAL:
            log = alert_logger.error
        elif alert.level == AlertLevel.WARNING:
            log = alert_logger.warning
        else:
            log = alert_logger.info
        log(
            "alert",
            level=alert.level.name,
            title=alert.title,
            message=alert.message,
            source=alert.source,
            trigger_action=alert.trigger_action,
            detail=alert.detail,
        )

    async def _dispatch_to_channels(self, alert: Alert) -> None:
        if not self._channels:
            return
        await asyncio.gather(*(self._deliver(ch, alert) for ch in self._channels))

    async def _deliver(self, ch: NotificationChannel, alert: Alert) -> None:
        name = self._channel_name(ch)
        try:
            ok = await asyncio.wait_for(ch.send(alert), timeout=self._channel_timeout_secs)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "channel_dispatch_error",
                channel=name,
                title=alert.title,
                error=describe_error(exc),
            )
            ok = False
        if not ok:
            self._channel_failures[name] = self._channel_failures.get(name, 0) + 1

    @staticmethod
    def _channel_name(ch: NotificationChannel) -> str:
        return getattr(ch, "name", None) or type(ch).__name__

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for ch in self._channels:
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=self._channel_name(ch))
