"""Tests for alert rendering and protocol event → alert mapping."""

from __future__ import annotations

from decimal import Decimal

from sentinel.core.types import Alert, AlertLevel, ProtocolEvent, ProtocolEventType
from sentinel.monitor.formatters import (
    format_details,
    format_email_html,
    format_protocol_event,
    format_telegram_text,
    format_webhook_payload,
    liquidation_debt_usd,
)


def _alert(**kw: object) -> Alert:
    defaults: dict[str, object] = {
        "level": AlertLevel.WARNING,
        "title": "High Utilization",
        "message": "Asset 0xA utilization is 97.00%",
        "detail": {"asset": "0xA", "utilization": Decimal("0.97")},
        "emitted_at": 0.0,
    }
    defaults.update(kw)
    return Alert(**defaults)  # type: ignore[arg-type]


def _liquidation(debt_tokens: int) -> ProtocolEvent:
    return ProtocolEvent(
        event_type=ProtocolEventType.LIQUIDATION_CALL,
        block_number=9,
        tx_hash="0xliq",
        args={
            "user": "0xUser",
            "liquidator": "0xBot",
            "debtToCover": debt_tokens * 10**18,
        },
    )


class TestRendering:
    def test_details_handles_decimal(self) -> None:
        assert '"utilization": "0.97"' in format_details({"utilization": Decimal("0.97")})

    def test_email_html_escapes_and_colours(self) -> None:
        html = format_email_html(_alert(title="<script>"))
        assert "&lt;script&gt;" in html
        assert "#ffc107" in html
        assert "Details:" in html

    def test_email_html_without_details(self) -> None:
        assert "Details:" not in format_email_html(_alert(detail={}))

    def test_telegram_text(self) -> None:
        text = format_telegram_text(_alert())
        assert "<b>High Utilization</b>" in text
        assert "<b>Level:</b> WARNING" in text
        assert "<pre>" in text
        assert "1970-01-01T00:00:00+00:00" in text

    def test_webhook_payload_is_json_safe(self) -> None:
        payload = format_webhook_payload(_alert(), "svc")
        assert payload == {
            "level": "WARNING",
            "title": "High Utilization",
            "message": "Asset 0xA utilization is 97.00%",
            "details": {"asset": "0xA", "utilization": "0.97"},
            "timestamp": "1970-01-01T00:00:00+00:00",
            "service": "svc",
        }


class TestProtocolEvents:
    def test_paused_is_warning(self) -> None:
        alert = format_protocol_event(
            ProtocolEvent(event_type=ProtocolEventType.PAUSED, tx_hash="0x1"), 10_000,
        )
        assert alert is not None
        assert alert.level == AlertLevel.WARNING
        assert alert.title == "Protocol Paused"
        assert alert.trigger_action is False

    def test_unpaused_is_info(self) -> None:
        alert = format_protocol_event(
            ProtocolEvent(event_type=ProtocolEventType.UNPAUSED), 10_000,
        )
        assert alert is not None
        assert alert.level == AlertLevel.INFO

    def test_large_liquidation(self) -> None:
        alert = format_protocol_event(_liquidation(25_000), 10_000)
        assert alert is not None
        assert alert.level == AlertLevel.WARNING
        assert alert.title == "Large Liquidation"
        assert alert.message == "Liquidation of $25,000.00 detected"
        assert alert.detail["user"] == "0xUser"
        assert alert.detail["liquidator"] == "0xBot"
        assert alert.detail["tx_hash"] == "0xliq"

    def test_small_liquidation_ignored(self) -> None:
        assert format_protocol_event(_liquidation(10_000), 10_000) is None

    def test_debt_scaling(self) -> None:
        assert liquidation_debt_usd(_liquidation(3)) == Decimal(3)
