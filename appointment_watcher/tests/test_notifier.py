from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from appointment_watcher.config import EmailConfig, PushbulletConfig
from appointment_watcher.models import Notification
from appointment_watcher.notifier import (
    EmailChannel,
    NotificationChannelError,
    Notifier,
    PushbulletChannel,
    TelegramChannel,
)
from appointment_watcher.supervisor import ConnectionSupervisor

from conftest import FakeChannel

FOUND = Notification(title="Earlier Appointment Found!", text="*Found*", push_body="New appointment")


@pytest.mark.asyncio
async def test_failing_channel_does_not_block_others() -> None:
    telegram = FakeChannel("telegram")
    email = FakeChannel("email", error=NotificationChannelError("smtp down"))
    push = FakeChannel("pushbullet", error=RuntimeError("unexpected"))

    results = await Notifier([telegram, email, push]).notify(FOUND)

    assert results == {"telegram": True, "email": False, "pushbullet": False}
    assert telegram.sent == [FOUND]


@pytest.mark.asyncio
async def test_disabled_channels_are_skipped() -> None:
    telegram = FakeChannel("telegram")
    email = FakeChannel("email", enabled=False)
    notifier = Notifier([telegram, email])

    results = await notifier.notify(FOUND)

    assert results == {"telegram": True}
    assert email.sent == []
    assert notifier.enabled_channels == ["telegram"]


@pytest.mark.asyncio
async def test_notify_chat_goes_to_telegram_only() -> None:
    telegram = FakeChannel("telegram")
    email = FakeChannel("email")

    ok = await Notifier([telegram, email]).notify_chat("status")

    assert ok is True
    assert [n.text for n in telegram.sent] == ["status"]
    assert email.sent == []


@pytest.mark.asyncio
async def test_telegram_channel_skips_when_not_ready() -> None:
    supervisor = ConnectionSupervisor(lambda: None)  # type: ignore[arg-type, return-value]
    channel = TelegramChannel(supervisor, chat_id=4242)

    assert await channel.send(FOUND) is False


@pytest.mark.asyncio
async def test_pushbullet_posts_note() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"active": True})

    channel = PushbulletChannel(PushbulletConfig(api_key="o.test"), transport=httpx.MockTransport(handler))

    assert await channel.send(FOUND) is True

    [request] = seen
    assert str(request.url) == "https://api.pushbullet.com/v2/pushes"
    assert request.headers["Access-Token"] == "o.test"
    assert json.loads(request.content) == {
        "type": "note",
        "title": "Earlier Appointment Found!",
        "body": "New appointment",
    }


@pytest.mark.asyncio
async def test_pushbullet_error_status_raises_channel_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "invalid token"}})

    channel = PushbulletChannel(PushbulletConfig(api_key="o.bad"), transport=httpx.MockTransport(handler))

    with pytest.raises(NotificationChannelError, match="401"):
        await channel.send(FOUND)


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host: str, port: int, timeout: float = 0) -> None:
        self.host = host
        self.port = port
        self.calls: list[tuple[str, Any]] = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.calls.append(("quit", None))

    def starttls(self) -> None:
        self.calls.append(("starttls", None))

    def login(self, user: str, password: str) -> None:
        self.calls.append(("login", (user, password)))

    def sendmail(self, sender: str, recipients: list[str], message: str) -> None:
        self.calls.append(("sendmail", (sender, recipients, message)))


@pytest.mark.asyncio
async def test_email_uses_starttls_and_login(monkeypatch: pytest.MonkeyPatch) -> None:
    FakeSMTP.instances.clear()
    monkeypatch.setattr("appointment_watcher.notifier.smtplib.SMTP", FakeSMTP)
    cfg = EmailConfig(sender="a@example.com", password="app-pw", recipient="b@example.com")

    assert await EmailChannel(cfg).send(FOUND) is True

    [smtp] = FakeSMTP.instances
    assert (smtp.host, smtp.port) == ("smtp.gmail.com", 587)
    names = [name for name, _ in smtp.calls]
    assert names == ["starttls", "login", "sendmail", "quit"]
    sender, recipients, message = smtp.calls[2][1]
    assert sender == "a@example.com"
    assert recipients == ["b@example.com"]
    assert "Subject: Earlier Appointment Found!" in message


class RecordingTransport:
    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []

    def on_fault(self, listener) -> None:
        pass

    async def probe(self) -> str:
        return "@test_bot"

    def start_polling(self) -> None:
        pass

    async def send_message(self, chat_id: int, text: str) -> None:
        self.sent.append((chat_id, text))

    async def close(self) -> None:
        pass


@pytest.mark.asyncio
async def test_telegram_channel_sends_through_ready_transport() -> None:
    transport = RecordingTransport()
    supervisor = ConnectionSupervisor(lambda: transport, retry_delay=0)  # type: ignore[arg-type, return-value]
    await supervisor.initialize()

    assert await TelegramChannel(supervisor, chat_id=4242).send(FOUND) is True
    assert transport.sent == [(4242, "*Found*")]
