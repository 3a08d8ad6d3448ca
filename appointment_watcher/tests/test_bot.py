from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from appointment_watcher import bot
from appointment_watcher.config import ConfigError
from appointment_watcher.supervisor import TransportInitError


@pytest.mark.asyncio
async def test_owner_only_middleware_drops_foreign_chats() -> None:
    middleware = bot.OwnerOnlyMiddleware(chat_id=4242)
    handled: list[Any] = []

    async def handler(event: Any, data: dict[str, Any]) -> str:
        handled.append(event)
        return "ok"

    foreign = SimpleNamespace(chat=SimpleNamespace(id=1))
    owner = SimpleNamespace(chat=SimpleNamespace(id=4242))

    assert await middleware(handler, foreign, {}) is None
    assert await middleware(handler, owner, {}) == "ok"
    assert handled == [owner]


def test_main_exits_with_1_on_config_error(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    def broken() -> None:
        raise ConfigError("BOT_TOKEN and CHAT_ID environment variables are required")

    monkeypatch.setattr(bot, "get_settings", broken)

    assert bot.main() == 1
    assert "BOT_TOKEN" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_run_exits_with_1_when_bot_never_comes_up(settings, monkeypatch: pytest.MonkeyPatch) -> None:
    class DeadTransport:
        def __init__(self, token: str, dispatcher: Any) -> None:
            self.closed = False

        def on_fault(self, listener: Any) -> None:
            pass

        async def probe(self) -> str:
            raise TransportInitError("getMe failed: Unauthorized")

        async def close(self) -> None:
            self.closed = True

    monkeypatch.setattr(bot, "TelegramTransport", DeadTransport)
    settings.supervisor.max_attempts = 2
    settings.supervisor.retry_delay = 0

    assert await bot._run(settings) == 1
