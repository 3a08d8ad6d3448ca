"""
Multi-channel notification fan-out.

Every channel is enabled once at startup from configuration completeness and
delivers independently: a failing channel is logged and never blocks the others.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.text import MIMEText
from typing import Dict, Iterable, Optional, Sequence

import httpx

from .config import EmailConfig, PushbulletConfig
from .models import Notification
from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)


class NotificationChannelError(RuntimeError):
    """A single channel failed to deliver a notification."""


class NotificationChannel:
    name = "channel"

    @property
    def enabled(self) -> bool:
        return True

    async def send(self, notification: Notification) -> bool:
        """Deliver the notification. Returns False when skipped, raises on failure."""
        raise NotImplementedError


class TelegramChannel(NotificationChannel):
    name = "telegram"

    def __init__(self, supervisor: ConnectionSupervisor, chat_id: int) -> None:
        self.supervisor = supervisor
        self.chat_id = chat_id

    async def send(self, notification: Notification) -> bool:
        transport = self.supervisor.transport
        if not self.supervisor.is_ready or transport is None:
            logger.error("Telegram bot not ready (%s). Message not sent.", self.supervisor.state.value)
            return False
        try:
            await transport.send_message(self.chat_id, notification.text)
        except Exception as e:  # noqa: BLE001
            if "chat not found" in str(e).lower():
                logger.error("Check BOT_TOKEN and CHAT_ID, and that the bot was started in the target chat.")
            raise NotificationChannelError(f"Telegram send failed: {e}") from e
        return True


class EmailChannel(NotificationChannel):
    name = "email"

    def __init__(self, cfg: EmailConfig) -> None:
        self.cfg = cfg

    @property
    def enabled(self) -> bool:
        return self.cfg.enabled

    def _send_sync(self, subject: str, body: str) -> None:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.cfg.sender or ""
        msg["To"] = self.cfg.recipient or ""
        with smtplib.SMTP(self.cfg.smtp_host, self.cfg.smtp_port, timeout=30) as server:
            server.starttls()
            server.login(self.cfg.sender or "", self.cfg.password or "")
            server.sendmail(self.cfg.sender or "", [self.cfg.recipient or ""], msg.as_string())

    async def send(self, notification: Notification) -> bool:
        logger.info('Sending email: "%s"', notification.title)
        try:
            # smtplib blocks; keep the event loop free
            await asyncio.to_thread(self._send_sync, notification.title, notification.text)
        except smtplib.SMTPAuthenticationError as e:
            raise NotificationChannelError(
                f"SMTP authentication failed ({e}); use an app password for Gmail"
            ) from e
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationChannelError(f"Failed to send email: {e}") from e
        logger.info("Email sent successfully.")
        return True


class PushbulletChannel(NotificationChannel):
    name = "pushbullet"

    def __init__(self, cfg: PushbulletConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.cfg = cfg
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return self.cfg.enabled

    async def send(self, notification: Notification) -> bool:
        logger.info('Sending Pushbullet notification: "%s"', notification.title)
        payload = {
            "type": "note",
            "title": notification.title,
            "body": notification.push_body or notification.text,
        }
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                r = await client.post(
                    f"{self.cfg.api_base_url}/pushes",
                    json=payload,
                    headers={"Access-Token": self.cfg.api_key or ""},
                )
                r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationChannelError(
                f"Pushbullet API responded with status {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise NotificationChannelError(f"No response from Pushbullet API: {e!r}") from e
        logger.info("Pushbullet notification sent successfully.")
        return True


class Notifier:
    """Fans a notification out to every enabled channel."""

    def __init__(self, channels: Sequence[NotificationChannel]) -> None:
        self.channels = list(channels)
        for channel in self.channels:
            if not channel.enabled:
                logger.warning("%s notifications are not configured and will be skipped", channel.name)

    @property
    def enabled_channels(self) -> list[str]:
        return [c.name for c in self.channels if c.enabled]

    async def _deliver(self, channel: NotificationChannel, notification: Notification) -> bool:
        try:
            return await channel.send(notification)
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to deliver via %s: %s", channel.name, e)
            return False

    async def notify(
        self,
        notification: Notification,
        channels: Optional[Iterable[str]] = None,
    ) -> Dict[str, bool]:
        """Send to enabled channels (optionally only those named). Never raises."""
        wanted = set(channels) if channels is not None else None
        targets = [
            c for c in self.channels
            if c.enabled and (wanted is None or c.name in wanted)
        ]
        results = await asyncio.gather(*(self._deliver(c, notification) for c in targets))
        return {c.name: ok for c, ok in zip(targets, results)}

    async def notify_chat(self, text: str) -> bool:
        results = await self.notify(Notification(title="Appointment watcher", text=text), channels=[TelegramChannel.name])
        return results.get(TelegramChannel.name, False)


__all__ = [
    "Notifier",
    "NotificationChannel",
    "NotificationChannelError",
    "TelegramChannel",
    "EmailChannel",
    "PushbulletChannel",
]
