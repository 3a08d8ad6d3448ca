"""
Config loading via Pydantic v2 and python-dotenv.

Settings are read from the environment (and an optional ``.env`` next to the
project root), validated once and cached for the lifetime of the process.
"""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, computed_field, field_validator


BASE_DIR = Path(__file__).resolve().parent.parent
# DATA_DIR can point to a mounted volume so appointment.json survives restarts
DATA_DIR = Path(os.environ.get("DATA_DIR", str(BASE_DIR)))
ENV_PATH = BASE_DIR / ".env"

if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=False)


DEFAULT_APPOINTMENT_URL = "https://appointment.bmeia.gv.at/"


class ConfigError(RuntimeError):
    """Required configuration is missing or invalid. The process must not start."""


class BotConfig(BaseModel):
    token: str = Field(min_length=1)
    chat_id: int

    @field_validator("chat_id")
    @classmethod
    def _non_zero_chat(cls, value: int) -> int:
        if value == 0:
            raise ValueError("CHAT_ID must be a non-zero integer")
        return value


class TargetConfig(BaseModel):
    """What the watcher asks the booking site for."""

    url: str = DEFAULT_APPOINTMENT_URL
    office: str = "NAIROBI"
    calendar_id: str = "2840814"
    person_count: int = Field(default=1, ge=1)
    command: str = "Next"
    request_timeout: float = Field(default=30.0, gt=0)


class MonitorConfig(BaseModel):
    timezone: str
    check_interval: str = "*/5 * * * *"

    @field_validator("timezone")
    @classmethod
    def _valid_zone(cls, value: str) -> str:
        if not value:
            raise ValueError("TIMEZONE is required (e.g. 'Africa/Nairobi')")
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(
                f"Invalid TIMEZONE {value!r}. Use an IANA name such as 'Europe/Berlin'."
            ) from e
        return value

    @field_validator("check_interval")
    @classmethod
    def _valid_cron(cls, value: str) -> str:
        try:
            CronTrigger.from_crontab(value)
        except ValueError as e:
            raise ValueError(f"CHECK_INTERVAL is not a valid cron expression: {value!r}") from e
        return value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class EmailConfig(BaseModel):
    sender: Optional[str] = None
    password: Optional[str] = None
    recipient: Optional[str] = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587

    @computed_field  # type: ignore[misc]
    @property
    def enabled(self) -> bool:
        # All-or-nothing: a partial trio disables the channel
        return bool(self.sender and self.password and self.recipient)


class PushbulletConfig(BaseModel):
    api_key: Optional[str] = None
    api_base_url: str = "https://api.pushbullet.com/v2"

    @computed_field  # type: ignore[misc]
    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


class SupervisorConfig(BaseModel):
    max_attempts: int = Field(default=5, ge=1)
    retry_delay: float = Field(default=10.0, ge=0)
    healthcheck_interval: float = Field(default=60.0, gt=0)


class LoggingConfig(BaseModel):
    logs_dir: Path = Field(default_factory=lambda: BASE_DIR / "logs")
    log_level: str = Field(default="INFO")
    max_bytes: int = Field(default=5 * 1024 * 1024)  # 5 MB
    backup_count: int = Field(default=5)


class Settings(BaseModel):
    bot: BotConfig
    monitor: MonitorConfig
    target: TargetConfig = TargetConfig()
    email: EmailConfig = EmailConfig()
    pushbullet: PushbulletConfig = PushbulletConfig()
    supervisor: SupervisorConfig = SupervisorConfig()
    logging: LoggingConfig = LoggingConfig()
    appointment_file: Path = Field(default_factory=lambda: DATA_DIR / "appointment.json")


def _int(env: Mapping[str, str], name: str, default: str) -> int:
    raw = (env.get(name) or default).strip()
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _float(env: Mapping[str, str], name: str, default: str) -> float:
    raw = (env.get(name) or default).strip()
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Build settings from ``env`` (``os.environ`` by default).

    Raises ConfigError when a required value is missing or invalid.
    """
    if env is None:
        env = os.environ

    token = (env.get("BOT_TOKEN") or "").strip()
    chat_id_raw = (env.get("CHAT_ID") or "").strip()
    if not token or not chat_id_raw:
        raise ConfigError("BOT_TOKEN and CHAT_ID environment variables are required")
    if not (env.get("TIMEZONE") or "").strip():
        raise ConfigError("TIMEZONE environment variable is required (e.g. 'Africa/Nairobi')")

    try:
        bot = BotConfig(token=token, chat_id=_int(env, "CHAT_ID", "0"))
        monitor = MonitorConfig(
            timezone=env["TIMEZONE"].strip(),
            check_interval=(env.get("CHECK_INTERVAL") or "*/5 * * * *").strip(),
        )
        target = TargetConfig(
            url=env.get("APPOINTMENT_URL") or DEFAULT_APPOINTMENT_URL,
            office=env.get("EMBASSY_OFFICE") or "NAIROBI",
            calendar_id=env.get("CALENDAR_ID") or "2840814",
            person_count=_int(env, "PERSON_COUNT", "1"),
            request_timeout=_float(env, "REQUEST_TIMEOUT", "30"),
        )
        email = EmailConfig(
            sender=env.get("EMAIL_SENDER") or None,
            password=env.get("EMAIL_PASSWORD") or None,
            recipient=env.get("EMAIL_RECIPIENT") or None,
            smtp_host=env.get("SMTP_HOST") or "smtp.gmail.com",
            smtp_port=_int(env, "SMTP_PORT", "587"),
        )
        pushbullet = PushbulletConfig(api_key=env.get("PUSHBULLET_API_KEY") or None)
        supervisor = SupervisorConfig(
            max_attempts=_int(env, "BOT_INIT_MAX_ATTEMPTS", "5"),
            retry_delay=_float(env, "BOT_INIT_RETRY_DELAY", "10"),
            healthcheck_interval=_float(env, "BOT_HEALTHCHECK_INTERVAL", "60"),
        )
        logging_cfg = LoggingConfig(log_level=env.get("LOG_LEVEL") or "INFO")
        appointment_file = Path(env.get("APPOINTMENT_FILE") or DATA_DIR / "appointment.json")
        return Settings(
            bot=bot,
            monitor=monitor,
            target=target,
            email=email,
            pushbullet=pushbullet,
            supervisor=supervisor,
            logging=logging_cfg,
            appointment_file=appointment_file,
        )
    except ValidationError as e:
        raise ConfigError(str(e)) from e


@lru_cache
def get_settings() -> Settings:
    """Load and cache settings from the process environment."""
    return load_settings()


__all__ = ["ConfigError", "Settings", "load_settings", "get_settings", "BASE_DIR", "DATA_DIR"]
