"""Notification channels — email, Telegram and webhook delivery."""

from __future__ import annotations

import abc
import asyncio
import smtplib
from email.message import EmailMessage

import aiohttp
import structlog

from sentinel.core.config import EmailConfig, TelegramConfig, WebhookConfig
from sentinel.core.types import Alert
from sentinel.monitor.formatters import (
    format_email_html,
    format_email_subject,
    format_telegram_text,
    format_webhook_payload,
)

logger = structlog.get_logger(__name__)


class NotificationChannel(abc.ABC):
    """Base class for alert delivery channels."""

    name: str = "channel"

    @abc.abstractmethod
    async def send(self, alert: Alert) -> bool:
        """Deliver an alert. Returns True on success."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class _HttpChannel(NotificationChannel):
    """Shared aiohttp session handling for HTTP transports."""

    def __init__(self) -> None:
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class EmailChannel(NotificationChannel):
    """Delivers alerts as HTML email through an SMTP relay.

    smtplib is blocking, so each send runs on a worker thread.
    """

    name = "email"

    def __init__(self, config: EmailConfig) -> None:
        self._host = config.host
        self._port = config.port
        self._secure = config.secure
        self._username = config.username
        self._password = config.password.get_secret_value()
        self._sender = config.sender
        self._recipients = list(config.recipients)

    def build_message(self, alert: Alert) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = format_email_subject(alert)
        msg["From"] = self._sender
        msg["To"] = ", ".join(self._recipients)
        msg.set_content(f"{alert.title}\n\n{alert.message}")
        msg.add_alternative(format_email_html(alert), subtype="html")
        return msg

    async def send(self, alert: Alert) -> bool:
        if not self._recipients:
            logger.warning("email_no_recipients")
            return False
        msg = self.build_message(alert)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError):
            logger.exception("email_send_error")
            return False
        return True

    def _deliver(self, msg: EmailMessage) -> None:
        if self._secure:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(self._host, self._port, timeout=30)
        else:
            smtp = smtplib.SMTP(self._host, self._port, timeout=30)
        with smtp:
            if not self._secure:
                smtp.starttls()
            if self._username:
                smtp.login(self._username, self._password)
            smtp.send_message(msg)

    async def close(self) -> None:
        return None


class TelegramChannel(_HttpChannel):
    """Delivers alerts via the Telegram Bot API (HTML parse mode)."""

    name = "telegram"

    def __init__(self, config: TelegramConfig) -> None:
        super().__init__()
        self._token = config.bot_token.get_secret_value()
        self._chat_id = config.chat_id

    async def send(self, alert: Alert) -> bool:
        url = f"https://api.telegram.org/bot{self._token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": format_telegram_text(alert),
            "parse_mode": "HTML",
        }

        try:
            session = self._get_session()
            async with session.post(url, json=payload) as resp:
                if resp.status == 200:
                    return True
                body = await resp.text()
                logger.warning(
                    "telegram_send_failed",
                    status=resp.status,
                    body=body[:200],
                )
                return False
        except aiohttp.ClientError:
            logger.exception("telegram_send_error")
            return False


class WebhookChannel(_HttpChannel):
    """POSTs a JSON alert payload to a generic webhook."""

    name = "webhook"

    def __init__(self, config: WebhookConfig) -> None:
        super().__init__()
        self._url = config.url.get_secret_value()
        self._service_name = config.service_name

    async def send(self, alert: Alert) -> bool:
        payload = format_webhook_payload(alert, self._service_name)

        try:
            session = self._get_session()
            async with session.post(self._url, json=payload) as resp:
                if 200 <= resp.status < 300:
                    return True
                body = await resp.text()
                logger.warning(
                    "webhook_send_failed",
                    status=resp.status,
                    body=body[:200],
                )
                return False
        except aiohttp.ClientError:
            logger.exception("webhook_send_error")
            return False
