"""
Supervision of the long-lived Telegram bot connection.

The supervisor owns the transport lifecycle::

    uninitialized -> initializing -> ready
    initializing  -> failed -> initializing      (bounded attempts)
    ready         -> reconnecting -> ready | failed
    any           -> stopped

Transports report fatal problems as ``TransportFault`` objects. Faults are
queued and handled one at a time by ``run()``, so a burst of errors leads to a
single reconnect and never to two initializations in flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union

from .models import ConnectionState

logger = logging.getLogger(__name__)


class TransportInitError(RuntimeError):
    """The bot transport could not be created or failed its identity probe."""


@dataclass(frozen=True)
class TransportFault:
    transport: Any
    reason: str
    error: Optional[BaseException] = None


FaultListener = Callable[[TransportFault], None]


class Transport(Protocol):
    def on_fault(self, listener: FaultListener) -> None: ...

    async def probe(self) -> str: ...

    def start_polling(self) -> None: ...

    async def send_message(self, chat_id: int, text: str) -> None: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class ReadyWith:
    transport: Transport


@dataclass(frozen=True)
class ExhaustedRetries:
    attempts: int
    last_error: Optional[BaseException] = None


@dataclass(frozen=True)
class AlreadyInitializing:
    transport: Optional[Transport] = None


InitResult = Union[ReadyWith, ExhaustedRetries, AlreadyInitializing]


class ConnectionSupervisor:
    """Keeps one bot transport alive: init with retries, reconnect on faults."""

    def __init__(
        self,
        transport_factory: Callable[[], Transport],
        *,
        max_attempts: int = 5,
        retry_delay: float = 10.0,
        healthcheck_interval: float = 60.0,
        attach_handlers: Optional[Callable[[], None]] = None,
    ) -> None:
        self._factory = transport_factory
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.healthcheck_interval = healthcheck_interval
        self.attach_handlers = attach_handlers

        self.state = ConnectionState.UNINITIALIZED
        self._transport: Optional[Transport] = None
        self._initializing = False
        self._handlers_attached = False
        self._faults: asyncio.Queue[TransportFault] = asyncio.Queue()
        self._stopped = asyncio.Event()

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    @property
    def is_ready(self) -> bool:
        return self.state is ConnectionState.READY and self._transport is not None

    @property
    def handlers_attached(self) -> bool:
        return self._handlers_attached

    # region lifecycle
    async def initialize(
        self,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ) -> InitResult:
        """Bring the transport up. Concurrent callers get ``AlreadyInitializing``."""
        if self._initializing:
            logger.info("Bot initialization already in progress. Skipping.")
            return AlreadyInitializing(self._transport)

        self._initializing = True
        try:
            result = await self._attempt(
                max_attempts if max_attempts is not None else self.max_attempts,
                retry_delay if retry_delay is not None else self.retry_delay,
            )
        finally:
            self._initializing = False
        self._on_result(result)
        return result

    async def reconnect(self) -> InitResult:
        """Tear the current transport down and initialize a fresh one."""
        if self._initializing:
            logger.info("Reconnect requested while initialization is running. Skipping.")
            return AlreadyInitializing(self._transport)

        self._initializing = True
        try:
            logger.info("Attempting to reconnect bot...")
            self._transition(ConnectionState.RECONNECTING)
            old, self._transport = self._transport, None
            if old is not None:
                await self._close_quietly(old)
            self._transition(ConnectionState.UNINITIALIZED)
            result = await self._attempt(self.max_attempts, self.retry_delay)
        finally:
            self._initializing = False

        self._on_result(result)
        if isinstance(result, ReadyWith):
            logger.info("Bot reconnected successfully")
        else:
            logger.error("Bot reconnection failed; notifications via Telegram are unavailable")
        return result

    async def stop(self) -> None:
        self.state = ConnectionState.STOPPED
        self._stopped.set()
        transport, self._transport = self._transport, None
        # wake run() so it can exit
        self._faults.put_nowait(TransportFault(transport=None, reason="stopped"))
        if transport is not None:
            await self._close_quietly(transport)
        logger.info("Connection supervisor stopped")

    async def _attempt(self, max_attempts: int, retry_delay: float) -> InitResult:
        last_error: Optional[BaseException] = None
        for attempt in range(1, max_attempts + 1):
            if self.state is ConnectionState.STOPPED:
                break
            self._transition(ConnectionState.INITIALIZING)
            logger.info("Initializing Telegram bot (attempt %s/%s)...", attempt, max_attempts)

            transport: Optional[Transport] = None
            try:
                transport = self._factory()
                transport.on_fault(self.report_fault)
                identity = await transport.probe()
            except Exception as e:  # noqa: BLE001
                last_error = e
                self._transition(ConnectionState.FAILED)
                logger.error("Bot initialization attempt %s failed: %s", attempt, e)
                if transport is not None:
                    await self._close_quietly(transport)
            else:
                if self.state is ConnectionState.STOPPED:
                    await self._close_quietly(transport)
                    break
                self._transport = transport
                self.state = ConnectionState.READY
                logger.info("Bot initialized successfully as %s", identity)
                return ReadyWith(transport)

            if attempt < max_attempts:
                logger.info("Retrying in %.0f seconds...", retry_delay)
                await self._pause(retry_delay)

        if self.state is ConnectionState.STOPPED:
            logger.info("Bot initialization abandoned: supervisor stopped")
        else:
            logger.error("Max retries reached. Giving up on bot initialization.")
        self._transition(ConnectionState.FAILED)
        return ExhaustedRetries(attempts=max_attempts, last_error=last_error)

    async def _pause(self, delay: float) -> None:
        """Sleep for ``delay`` seconds or until ``stop()``, whichever comes first."""
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def _transition(self, state: ConnectionState) -> None:
        # stopped is terminal; an attempt finishing after stop() must not revive the state
        if self.state is not ConnectionState.STOPPED:
            self.state = state

    def _on_result(self, result: InitResult) -> None:
        if not isinstance(result, ReadyWith):
            return
        self._attach_handlers_once()
        result.transport.start_polling()

    def _attach_handlers_once(self) -> None:
        if self._handlers_attached or self.attach_handlers is None:
            return
        self.attach_handlers()
        self._handlers_attached = True
        logger.info("Telegram command handlers attached")

    @staticmethod
    async def _close_quietly(transport: Transport) -> None:
        try:
            await transport.close()
        except Exception as e:  # noqa: BLE001
            logger.warning("Error while closing bot transport: %s", e)

    # endregion

    # region faults
    def report_fault(self, fault: TransportFault) -> None:
        self._faults.put_nowait(fault)

    async def run(self) -> None:
        """Consume transport faults and reconnect until ``stop()``."""
        watchdog = asyncio.create_task(self._watchdog(), name="bot-watchdog")
        try:
            while True:
                fault = await self._faults.get()
                if self.state is ConnectionState.STOPPED:
                    break
                if fault.transport is None or fault.transport is not self._transport:
                    logger.debug("Ignoring fault from a retired transport: %s", fault.reason)
                    continue
                logger.error("Fatal bot transport error (%s), will attempt to reconnect...", fault.reason)
                await self._pause(self.retry_delay)
                if self.state is ConnectionState.STOPPED:
                    break
                await self.reconnect()
        finally:
            watchdog.cancel()
            await asyncio.gather(watchdog, return_exceptions=True)

    async def _watchdog(self) -> None:
        """Periodic identity probe; a failed probe is reported as a fault."""
        while self.state is not ConnectionState.STOPPED:
            await asyncio.sleep(self.healthcheck_interval)
            if self.state is ConnectionState.FAILED and not self._initializing:
                logger.info("Bot is still down, trying to bring it back up")
                await self.reconnect()
                continue
            transport = self._transport
            if transport is None or not self.is_ready:
                continue
            try:
                await transport.probe()
            except Exception as e:  # noqa: BLE001
                self.report_fault(TransportFault(transport=transport, reason="health probe failed", error=e))

    # endregion


__all__ = [
    "ConnectionSupervisor",
    "Transport",
    "TransportFault",
    "TransportInitError",
    "ReadyWith",
    "ExhaustedRetries",
    "AlreadyInitializing",
    "InitResult",
]
