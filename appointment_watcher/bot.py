"""
Telegram bot entrypoint built with aiogram 3.

Wires the pieces together:
- configuration, logging, the stored reference appointment
- the supervised bot connection and its command handlers
- the APScheduler cron job that triggers checks
- graceful shutdown on SIGINT / SIGTERM
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware, Dispatcher, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .commands import CommandService
from .config import ConfigError, Settings, get_settings
from .context import AppContext
from .fetcher import FetchClient
from .monitor import AppointmentMonitor
from .notifier import EmailChannel, Notifier, PushbulletChannel, TelegramChannel
from .parser import RegexDocumentParser
from .store import AppointmentStore
from .supervisor import ConnectionSupervisor, ReadyWith
from .transport import TelegramTransport
from .utils import escape_markdown, setup_logging


logger = logging.getLogger(__name__)


class OwnerOnlyMiddleware(BaseMiddleware):
    """Drop messages that do not come from the configured chat."""

    def __init__(self, chat_id: int) -> None:
        super().__init__()
        self.chat_id = chat_id

    async def __call__(
        self,
        handler: Callable[[Message, Dict[str, Any]], Awaitable[Any]],
        event: Message,
        data: Dict[str, Any],
    ) -> Any:
        if getattr(event, "chat", None) and event.chat.id != self.chat_id:
            logger.debug("Ignoring message from chat %s", event.chat.id)
            return None
        return await handler(event, data)


def build_router(commands: CommandService, notifier: Notifier) -> Router:
    router = Router(name="appointment-commands")

    async def _answer(message: Message, text: str) -> None:
        try:
            await message.answer(text)
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to reply to %s: %s", message.chat.id, e)

    @router.message(Command("set"))
    async def cmd_set(message: Message, command: CommandObject) -> None:
        if not command.args:
            await _answer(message, "Usage: `/set YYYY-MM-DD`")
            return
        try:
            await commands.set(command.args, lambda text: _answer(message, text))
        except Exception as e:  # noqa: BLE001
            logger.exception("Error setting appointment: %s", e)
            await _answer(message, "❌ Error setting appointment. Please try again.")

    @router.message(Command("check"))
    async def cmd_check(message: Message) -> None:
        try:
            await commands.check(lambda text: _answer(message, text))
        except Exception as e:  # noqa: BLE001
            logger.exception("Error during manual check: %s", e)
            await _answer(message, "❌ Error checking for appointments. Check logs for details.")

    @router.message(Command("current"))
    async def cmd_current(message: Message) -> None:
        await _answer(message, commands.status())

    @router.message(Command("start"))
    async def cmd_start(message: Message) -> None:
        await _answer(message, commands.help(notifier.enabled_channels))

    return router


def main() -> int:
    """Entry point for running the watcher. Returns the process exit code."""
    try:
        settings = get_settings()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(settings.logging)
    return asyncio.run(_run(settings))


async def _run(settings: Settings) -> int:
    logger.info("Starting Austrian Embassy Appointment Watcher...")
    logger.info("Timezone: %s", settings.monitor.timezone)

    ctx = AppContext(
        settings=settings,
        store=AppointmentStore(settings.appointment_file, settings.monitor.timezone),
    )
    ctx.load_reference()

    dp = Dispatcher()
    dp.message.middleware(OwnerOnlyMiddleware(settings.bot.chat_id))

    supervisor = ConnectionSupervisor(
        lambda: TelegramTransport(settings.bot.token, dp),
        max_attempts=settings.supervisor.max_attempts,
        retry_delay=settings.supervisor.retry_delay,
        healthcheck_interval=settings.supervisor.healthcheck_interval,
    )
    notifier = Notifier(
        [
            TelegramChannel(supervisor, settings.bot.chat_id),
            EmailChannel(settings.email),
            PushbulletChannel(settings.pushbullet),
        ]
    )
    monitor = AppointmentMonitor(
        ctx,
        FetchClient(settings.target),
        RegexDocumentParser(settings.monitor.zone),
        notifier,
    )
    commands = CommandService(ctx, monitor)
    supervisor.attach_handlers = lambda: dp.include_router(build_router(commands, notifier))

    result = await supervisor.initialize()
    if not isinstance(result, ReadyWith):
        logger.error("Fatal error: Bot initialization failed. Exiting.")
        return 1

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable on Windows event loops
            pass

    supervisor_task = asyncio.create_task(supervisor.run(), name="bot-supervisor")

    scheduler = AsyncIOScheduler(timezone=settings.monitor.zone)
    job = scheduler.add_job(
        monitor.check_appointments,
        trigger=CronTrigger.from_crontab(settings.monitor.check_interval, timezone=settings.monitor.zone),
        id="appointment_check",
        name="Appointment check",
        coalesce=True,
        replace_existing=True,
    )
    logger.info('Scheduling checks with cron schedule: "%s"', settings.monitor.check_interval)
    scheduler.start()

    try:
        await _initial_check(ctx, monitor, notifier)
        next_run = job.next_run_time
        next_line = (
            f"⏰ Next auto-check around: {next_run:%Y-%m-%d %H:%M:%S} ({escape_markdown(settings.monitor.timezone)})"
            if next_run
            else f'⏰ Next check: Scheduled according to "{settings.monitor.check_interval}"'
        )
        await notifier.notify_chat(
            "🤖 Austrian Embassy Appointment Watcher is now running!\n"
            f"{next_line}\n"
            f"🌍 Timezone: {escape_markdown(settings.monitor.timezone)}"
        )

        await stop_event.wait()
        logger.info("Shutting down gracefully...")
    finally:
        scheduler.shutdown(wait=False)
        await supervisor.stop()
        await asyncio.gather(supervisor_task, return_exceptions=True)
        logger.info("Cleanup complete. Goodbye!")
    return 0


async def _initial_check(ctx: AppContext, monitor: AppointmentMonitor, notifier: Notifier) -> None:
    logger.info("Running initial check...")
    if ctx.reference is None:
        logger.info("No appointment set on startup. Skipping initial check.")
        await notifier.notify_chat(
            "⚠️ No appointment set. Use `/set <date>` to set your current appointment.\n"
            "Example: `/set 2025-07-15`"
        )
        return
    run = await monitor.check_appointments(trigger="startup")
    logger.info("Initial check complete (%s). Monitoring for earlier appointments...", run.outcome)


if __name__ == "__main__":
    raise SystemExit(main())
