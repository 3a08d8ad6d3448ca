"""
Utility helpers: logging setup and human-readable date formatting.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import LoggingConfig, get_settings


def setup_logging(logging_cfg: LoggingConfig | None = None) -> None:
    """
    Configure application-wide logging with rotation.

    Writes to ``<logs_dir>/appointment_watcher.log`` and to the console.
    """
    if logging_cfg is None:
        logging_cfg = get_settings().logging

    logs_dir: Path = logging_cfg.logs_dir
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / "appointment_watcher.log"

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=logging_cfg.max_bytes,
        backupCount=logging_cfg.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(logging_cfg.log_level.upper())
    root.handlers.clear()
    root.addHandler(file_handler)
    root.addHandler(console_handler)
    # these log every polled update or request at INFO
    for name in ("aiogram.event", "httpx", "apscheduler.executors.default"):
        logging.getLogger(name).setLevel(logging.WARNING)


_MARKDOWN_SPECIAL = ("_", "*", "`", "[")


def escape_markdown(text: str) -> str:
    """Escape characters that legacy Telegram Markdown treats as entity markers."""
    for ch in _MARKDOWN_SPECIAL:
        text = text.replace(ch, "\\" + ch)
    return text


_SUFFIXES = {1: "st", 2: "nd", 3: "rd"}


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    return f"{day}{_SUFFIXES.get(day % 10, 'th')}"


def format_long_date(value: date | datetime) -> str:
    """Return e.g. ``Thursday, September 25th, 2025``."""
    return f"{value.strftime('%A, %B')} {_ordinal(value.day)}, {value.year}"


__all__ = ["setup_logging", "format_long_date", "escape_markdown"]
