from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from appointment_watcher.config import Settings, load_settings
from appointment_watcher.models import Notification
from appointment_watcher.notifier import NotificationChannel


def make_env(tmp_path: Path, **overrides: str) -> dict[str, str]:
    # Test values only: no real tokens or chat ids, nothing leaves the process
    env = {
        "BOT_TOKEN": "TEST:TOKEN",
        "CHAT_ID": "4242",
        "TIMEZONE": "Africa/Nairobi",
        "APPOINTMENT_FILE": str(tmp_path / "appointment.json"),
    }
    env.update(overrides)
    return env


@pytest.fixture
def settings_factory(tmp_path: Path) -> Callable[..., Settings]:
    def _make(**overrides: str) -> Settings:
        return load_settings(make_env(tmp_path, **overrides))

    return _make


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    return settings_factory()


class FakeChannel(NotificationChannel):
    """Records every notification; can be told to fail or to be disabled."""

    def __init__(self, name: str, *, enabled: bool = True, error: Exception | None = None) -> None:
        self.name = name
        self._enabled = enabled
        self.error = error
        self.sent: list[Notification] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def send(self, notification: Notification) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append(notification)
        return True
