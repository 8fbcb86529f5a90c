"""Pure functions that render alerts per transport and map events to alerts."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from decimal import Decimal
from html import escape as html_escape
from typing import Any

from sentinel.core.types import Alert, AlertLevel, ProtocolEvent, ProtocolEventType

# ── Level styling ───────────────────────────────────────────────

LEVEL_COLORS: dict[AlertLevel, str] = {
    AlertLevel.INFO: "#17a2b8",       # teal
    AlertLevel.WARNING: "#ffc107",    # amber
    AlertLevel.CRITICAL: "#dc3545",   # red
    AlertLevel.EMERGENCY: "#8b0000",  # dark red
}

LEVEL_MARKERS: dict[AlertLevel, str] = {
    AlertLevel.INFO: "ℹ️",
    AlertLevel.WARNING: "⚠️",
    AlertLevel.CRITICAL: "\U0001f6a8",
    AlertLevel.EMERGENCY: "\U0001f6d1",
}

_DEFAULT_COLOR = "#6c757d"


def iso_timestamp(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).isoformat()


def format_details(detail: dict[str, Any]) -> str:
    """Pretty JSON for an alert's detail map; non-JSON values are stringified."""
    return json.dumps(detail, indent=2, sort_keys=True, default=str)


# ── Transport rendering ─────────────────────────────────────────


def format_email_subject(alert: Alert) -> str:
    return f"[{alert.level.name}] {alert.title} - Dera Protocol"


def format_email_html(alert: Alert) -> str:
    """HTML body with a level-coloured header and a JSON details block."""
    color = LEVEL_COLORS.get(alert.level, _DEFAULT_COLOR)
    marker = LEVEL_MARKERS.get(alert.level, "")
    parts = [
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">',
        f'<div style="background: {color}; color: white; padding: 20px;">',
        f"<h2>{marker} {html_escape(alert.title)}</h2>",
        "</div>",
        '<div style="background: #f5f5f5; padding: 20px;">',
        f"<p><strong>Level:</strong> {alert.level.name}</p>",
        f"<p><strong>Message:</strong> {html_escape(alert.message)}</p>",
    ]
    if alert.detail:
        parts.append("<p><strong>Details:</strong></p>")
        parts.append(
            '<pre style="background: white; padding: 10px;">'
            f"{html_escape(format_details(alert.detail))}</pre>"
        )
    parts.append(
        '<p style="color: #666; font-size: 12px; margin-top: 20px;">'
        f"Sent by Dera Protocol Monitoring Service<br>{iso_timestamp(alert.emitted_at)}</p>"
    )
    parts.append("</div></div>")
    return "\n".join(parts)


def format_telegram_text(alert: Alert) -> str:
    """Telegram message body (HTML parse mode)."""
    marker = LEVEL_MARKERS.get(alert.level, "")
    lines = [
        f"{marker} <b>{html_escape(alert.title)}</b>",
        "",
        f"<b>Level:</b> {alert.level.name}",
    ]
    if alert.message:
        lines.append(f"<b>Message:</b> {html_escape(alert.message)}")
    if alert.detail:
        lines.append("")
        lines.append("<b>Details:</b>")
        lines.append(f"<pre>{html_escape(format_details(alert.detail))}</pre>")
    lines.append("")
    lines.append(f"<i>{iso_timestamp(alert.emitted_at)}</i>")
    return "\n".join(lines)


def format_webhook_payload(alert: Alert, service: str) -> dict[str, Any]:
    """JSON-serialisable webhook body."""
    return {
        "level": alert.level.name,
        "title": alert.title,
        "message": alert.message,
        "details": json.loads(json.dumps(alert.detail, default=str)),
        "timestamp": iso_timestamp(alert.emitted_at),
        "service": service,
    }


# ── Protocol events ─────────────────────────────────────────────


def liquidation_debt_usd(event: ProtocolEvent, decimals: int = 18) -> Decimal:
    """Debt covered by a LiquidationCall, scaled from base units."""
    raw = event.args.get("debtToCover", 0)
    return Decimal(int(raw)).scaleb(-decimals)


def format_protocol_event(
    event: ProtocolEvent,
    large_liquidation_usd: float,
    debt_decimals: int = 18,
) -> Alert | None:
    """Map a pool event to an alert, or None when it is not alert-worthy.

    Pause notifications are warnings (the supervisor's own pause path raises
    the EMERGENCY alert). Liquidations alert only above the size threshold.
    """
    source = f"event:{event.event_type}"

    if event.event_type == ProtocolEventType.PAUSED:
        return Alert(
            level=AlertLevel.WARNING,
            title="Protocol Paused",
            message="The protocol has been paused",
            detail={"block": event.block_number, "tx_hash": event.tx_hash},
            source=source,
        )

    if event.event_type == ProtocolEventType.UNPAUSED:
        return Alert(
            level=AlertLevel.INFO,
            title="Protocol Unpaused",
            message="The protocol has been unpaused and is operational",
            detail={"block": event.block_number, "tx_hash": event.tx_hash},
            source=source,
        )

    if event.event_type == ProtocolEventType.LIQUIDATION_CALL:
        debt = liquidation_debt_usd(event, debt_decimals)
        if debt <= Decimal(str(large_liquidation_usd)):
            return None
        return Alert(
            level=AlertLevel.WARNING,
            title="Large Liquidation",
            message=f"Liquidation of ${debt:,.2f} detected",
            detail={
                "user": event.args.get("user", ""),
                "liquidator": event.args.get("liquidator", ""),
                "debt_to_cover": str(debt),
                "tx_hash": event.tx_hash,
            },
            source=source,
        )

    return None
