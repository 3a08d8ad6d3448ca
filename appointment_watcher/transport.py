"""
aiogram-backed bot transport used by the connection supervisor.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from .supervisor import FaultListener, TransportFault, TransportInitError

logger = logging.getLogger(__name__)


class TelegramTransport:
    """One ``Bot`` instance plus the polling task that feeds the shared dispatcher."""

    def __init__(self, token: str, dispatcher: Dispatcher) -> None:
        self.bot = Bot(token, default=DefaultBotProperties(parse_mode=ParseMode.MARKDOWN))
        self.dispatcher = dispatcher
        self._fault_listener: Optional[FaultListener] = None
        self._polling_task: Optional[asyncio.Task[None]] = None
        self._closing = False

    def on_fault(self, listener: FaultListener) -> None:
        self._fault_listener = listener

    async def probe(self) -> str:
        try:
            me = await self.bot.get_me()
        except Exception as e:  # noqa: BLE001
            raise TransportInitError(f"getMe failed: {type(e).__name__}: {e}") from e
        return f"@{me.username}" if me.username else str(me.id)

    def start_polling(self) -> None:
        if self._polling_task and not self._polling_task.done():
            return
        self._polling_task = asyncio.create_task(
            self.dispatcher.start_polling(self.bot, handle_signals=False, close_bot_session=False),
            name="telegram-polling",
        )
        self._polling_task.add_done_callback(self._on_polling_done)

    def _on_polling_done(self, task: asyncio.Task[None]) -> None:
        if self._closing or task.cancelled():
            return
        error = task.exception()
        reason = f"polling stopped: {error!r}" if error else "polling stopped unexpectedly"
        logger.error("Telegram %s", reason)
        if self._fault_listener is not None:
            self._fault_listener(TransportFault(transport=self, reason=reason, error=error))

    async def send_message(self, chat_id: int, text: str) -> None:
        await self.bot.send_message(chat_id=chat_id, text=text)

    async def close(self) -> None:
        self._closing = True
        task = self._polling_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._polling_task = None
        await self.bot.session.close()


__all__ = ["TelegramTransport"]
