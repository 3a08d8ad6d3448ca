"""
Chat commands: /set, /check, /current and /start.

The handlers in ``bot.py`` only route messages here; replies go back through
the ``reply`` callable so the order of messages is under our control.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Sequence
from zoneinfo import ZoneInfo

from .context import AppContext
from .models import END_OF_DAY, ReferenceAppointment
from .monitor import AppointmentMonitor
from .utils import escape_markdown, format_long_date

logger = logging.getLogger(__name__)

Reply = Callable[[str], Awaitable[None]]


# Tried in order; the first that parses wins
ACCEPTED_DATE_FORMATS: Sequence[tuple[str, str, str]] = (
    ("%d/%m/%Y", "DD/MM/YYYY", "12/06/2025"),
    ("%d.%m.%Y", "DD.MM.YYYY", "12.06.2025"),
    ("%Y-%m-%d", "YYYY-MM-DD", "2025-06-12"),
    ("%m/%d/%Y", "MM/DD/YYYY", "06/12/2025"),
    ("%m/%d/%Y", "M/D/YYYY", "6/12/2025"),
)

INVALID_DATE_MESSAGE = "❌ Invalid date format. Please use one of these formats:\n" + "\n".join(
    f"• {label} (e.g., {example})" for _, label, example in ACCEPTED_DATE_FORMATS
)
NO_APPOINTMENT_HINT = "⚠️ No appointment set. Use `/set YYYY-MM-DD` to set your current appointment."
_CHANNEL_LABELS = {"email": "Email", "pushbullet": "Pushbullet"}


def parse_reference_date(text: str, zone: ZoneInfo) -> Optional[datetime]:
    """Start of the given calendar day in ``zone``, or None if no format matches."""
    value = text.strip()
    for fmt, _, _ in ACCEPTED_DATE_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=zone)
    return None


def build_reference(text: str, tz_name: str) -> Optional[ReferenceAppointment]:
    day = parse_reference_date(text, ZoneInfo(tz_name))
    if day is None:
        return None
    return ReferenceAppointment(
        timezone=tz_name,
        date=day,
        comparison_time=END_OF_DAY,
        original_input_text=text.strip(),
        set_at=datetime.now(timezone.utc),
    )


class CommandService:
    def __init__(self, ctx: AppContext, monitor: AppointmentMonitor) -> None:
        self.ctx = ctx
        self.monitor = monitor

    async def set(self, date_text: str, reply: Reply) -> None:
        tz_name = self.ctx.settings.monitor.timezone
        appointment = build_reference(date_text, tz_name)
        if appointment is None:
            await reply(INVALID_DATE_MESSAGE)
            return

        if not self.ctx.set_reference(appointment):
            await reply("❌ Failed to save your appointment. Please try again.")
            return

        await reply(
            f"✅ Your current appointment has been set to: {format_long_date(appointment.date)}\n"
            "I'll notify you if I find any earlier appointments."
        )
        await self.monitor.check_appointments(trigger="set")

    async def check(self, reply: Reply) -> None:
        if self.ctx.reference is None:
            await reply(NO_APPOINTMENT_HINT)
            return
        await reply("🔍 Initiating manual appointment check...")
        await self.monitor.check_appointments(trigger="manual")

    def status(self) -> str:
        appt = self.ctx.reference
        if appt is None:
            return (
                "⚠️ No appointment set.\n\n"
                "Use `/set YYYY-MM-DD` to set your current appointment.\n"
                "Example: `/set 2025-07-15`\n\n"
                "I will notify you if I find any earlier appointments."
            )
        set_at = appt.set_at.astimezone(ZoneInfo(appt.timezone)).strftime("%Y-%m-%d %H:%M:%S")
        text = (
            "📅 *Your Current Appointment*\n"
            f"*Date:* {format_long_date(appt.date)}\n"
            f"*Time (for comparison baseline):* {appt.comparison_time or 'End of day'}\n"
            f"*Timezone:* {escape_markdown(appt.timezone)}\n"
            f"*Set/Saved on:* {set_at}"
        )
        last = self.monitor.last_run
        if last is not None and last.outcome is not None and last.finished_at is not None:
            text += f"\n*Last check:* {last.finished_at.astimezone(ZoneInfo(appt.timezone)):%Y-%m-%d %H:%M} ({last.outcome.value})"
        return text

    def help(self, enabled_channels: Sequence[str]) -> str:
        extra = [name for name in enabled_channels if name != "telegram"]
        labels = ["Telegram"] + [_CHANNEL_LABELS[name] for name in _CHANNEL_LABELS if name in extra]
        if len(labels) > 2:
            channels = ", ".join(labels[:-1]) + ", and " + labels[-1]
        else:
            channels = " and ".join(labels)
        text = (
            "🤖 *Austrian Embassy Appointment Watcher*\n\n"
            "*Commands:*\n"
            "/set <date> - Set your current appointment date (e.g., /set 2025-12-31, /set 31/12/2025)\n"
            "/check - Check for appointments immediately\n"
            "/current - Show your current appointment date\n"
            "/start - Show this help message\n\n"
            f"I'll notify you via {channels} if I find an earlier appointment!"
        )
        if len(extra) < 2:
            text += "\n\n*Note:* Check .env for full Email/Pushbullet setup."
        return text


__all__ = [
    "CommandService",
    "ACCEPTED_DATE_FORMATS",
    "INVALID_DATE_MESSAGE",
    "NO_APPOINTMENT_HINT",
    "parse_reference_date",
    "build_reference",
]
