from __future__ import annotations

from pathlib import Path

import pytest

from appointment_watcher.config import ConfigError, load_settings

from conftest import make_env


def test_defaults_are_applied(tmp_path: Path) -> None:
    settings = load_settings(make_env(tmp_path))

    assert settings.bot.chat_id == 4242
    assert settings.monitor.check_interval == "*/5 * * * *"
    assert settings.monitor.zone.key == "Africa/Nairobi"
    assert settings.target.office == "NAIROBI"
    assert settings.target.calendar_id == "2840814"
    assert settings.target.person_count == 1
    assert settings.target.request_timeout == 30
    assert settings.supervisor.max_attempts == 5
    assert settings.appointment_file == tmp_path / "appointment.json"


@pytest.mark.parametrize("missing", ["BOT_TOKEN", "CHAT_ID", "TIMEZONE"])
def test_missing_required_value_fails_fast(tmp_path: Path, missing: str) -> None:
    env = make_env(tmp_path)
    del env[missing]

    with pytest.raises(ConfigError):
        load_settings(env)


def test_invalid_timezone_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="TIMEZONE"):
        load_settings(make_env(tmp_path, TIMEZONE="Mars/Olympus_Mons"))


def test_invalid_cron_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="CHECK_INTERVAL"):
        load_settings(make_env(tmp_path, CHECK_INTERVAL="every five minutes"))


def test_non_integer_chat_id_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="CHAT_ID"):
        load_settings(make_env(tmp_path, CHAT_ID="my-chat"))


def test_email_is_all_or_nothing(tmp_path: Path) -> None:
    partial = load_settings(make_env(tmp_path, EMAIL_SENDER="a@example.com", EMAIL_PASSWORD="pw"))
    assert partial.email.enabled is False

    full = load_settings(
        make_env(
            tmp_path,
            EMAIL_SENDER="a@example.com",
            EMAIL_PASSWORD="pw",
            EMAIL_RECIPIENT="b@example.com",
        )
    )
    assert full.email.enabled is True
    assert full.email.smtp_host == "smtp.gmail.com"
    assert full.email.smtp_port == 587


def test_pushbullet_enabled_only_with_key(tmp_path: Path) -> None:
    assert load_settings(make_env(tmp_path)).pushbullet.enabled is False
    assert load_settings(make_env(tmp_path, PUSHBULLET_API_KEY="o.abc")).pushbullet.enabled is True


def test_overrides_from_environment(tmp_path: Path) -> None:
    settings = load_settings(
        make_env(
            tmp_path,
            CHECK_INTERVAL="0 * * * *",
            EMBASSY_OFFICE="LONDON",
            CALENDAR_ID="123",
            PERSON_COUNT="2",
            BOT_INIT_MAX_ATTEMPTS="3",
            BOT_INIT_RETRY_DELAY="1.5",
        )
    )

    assert settings.monitor.check_interval == "0 * * * *"
    assert settings.target.office == "LONDON"
    assert settings.target.calendar_id == "123"
    assert settings.target.person_count == 2
    assert settings.supervisor.max_attempts == 3
    assert settings.supervisor.retry_delay == 1.5
