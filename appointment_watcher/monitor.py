"""
Appointment check orchestration.

One check cycle: fetch the booking page, extract slots, compare the earliest
slot with the reference appointment and notify. Scheduled and manual triggers
share a single run-guard; a trigger that arrives mid-check is dropped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from .context import AppContext
from .fetcher import FetchClient
from .models import CandidateAppointment, CheckOutcome, CheckRun, Notification, ReferenceAppointment
from .notifier import Notifier
from .parser import DocumentParser
from .policy import decide
from .utils import escape_markdown, format_long_date

logger = logging.getLogger(__name__)


ERROR_MESSAGE = "❌ An error occurred while checking for appointments. Please check the logs for details."


def found_notification(earliest: CandidateAppointment, booking_url: str) -> Notification:
    text = (
        "✅ *Found earlier appointment!*\n"
        f"📅 *Date:* {format_long_date(earliest.date)}\n"
        f"🕒 *Time:* {escape_markdown(earliest.display_time)}\n"
        f"🔗 [Book Now]({booking_url})"
    )
    return Notification(
        title="Earlier Appointment Found!",
        text=text,
        push_body=(
            f"New appointment available on {earliest.date.strftime('%Y-%m-%d')} "
            f"at {earliest.display_time}"
        ),
    )


def status_notification(reference: ReferenceAppointment, earliest: CandidateAppointment) -> Notification:
    text = (
        "ℹ️ No appointments found earlier than your set date of "
        f"*{reference.date.strftime('%Y-%m-%d')}*.\n\n"
        "The earliest appointment currently available on the website is on "
        f"*{format_long_date(earliest.date)}* at *{escape_markdown(earliest.display_time)}*."
    )
    return Notification(title="Appointment status", text=text)


class AppointmentMonitor:
    """Runs check cycles against the reference held on ``AppContext``."""

    def __init__(
        self,
        ctx: AppContext,
        fetcher: FetchClient,
        parser: DocumentParser,
        notifier: Notifier,
    ) -> None:
        self.ctx = ctx
        self.fetcher = fetcher
        self.parser = parser
        self.notifier = notifier
        self._running = False
        self.checks_count = 0
        self.last_run: Optional[CheckRun] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def check_appointments(self, trigger: str = "scheduled") -> CheckRun:
        run = CheckRun(trigger=trigger)

        if self._running:
            logger.info("Check already in progress (%s trigger dropped)", trigger)
            return self._finish(run, CheckOutcome.SKIPPED_BUSY, record=False)

        reference = self.ctx.reference
        if reference is None:
            # no message: an unconfigured watcher would otherwise spam every cycle
            logger.info("No appointment set. Skipping check.")
            return self._finish(run, CheckOutcome.SKIPPED_NO_REFERENCE, record=False)

        # the guard is taken before the first await, so no other check can interleave
        self._running = True
        self.checks_count += 1
        logger.info("--- Starting appointment check (%s) ---", trigger)
        logger.info(
            "Comparing against current set appointment: %s (Timezone: %s)",
            reference.date.strftime("%Y-%m-%d %H:%M"),
            reference.timezone,
        )
        try:
            response = await self.fetcher.fetch_availability()
            candidates = self.parser.extract(response.text)
            decision = decide(reference, candidates)
            run.earliest = decision.earliest

            if decision.outcome is CheckOutcome.NO_CANDIDATES_FOUND:
                logger.info("No appointments found in the response HTML.")
            elif decision.outcome is CheckOutcome.EARLIER_FOUND and decision.earliest is not None:
                logger.info(
                    "Found earlier appointment: %s (your set appointment: %s). Sending notifications...",
                    decision.earliest.date.strftime("%Y-%m-%d"),
                    reference.date.strftime("%Y-%m-%d"),
                )
                # the reference is left as is; the user accepts a new date with /set
                await self.notifier.notify(found_notification(decision.earliest, self.ctx.settings.target.url))
            elif decision.earliest is not None:
                logger.info(
                    "No earlier appointments than %s. Earliest available: %s",
                    reference.date.strftime("%Y-%m-%d"),
                    decision.earliest.date.strftime("%Y-%m-%d %H:%M"),
                )
                await self.notifier.notify_chat(status_notification(reference, decision.earliest).text)

            return self._finish(run, decision.outcome)
        except Exception as e:  # noqa: BLE001
            logger.exception("Error in check_appointments: %s", e)
            run.error = f"{type(e).__name__}: {e}"
            try:
                await self.notifier.notify_chat(ERROR_MESSAGE)
            except Exception as notify_error:  # noqa: BLE001
                logger.error("Failed to send error notification: %s", notify_error)
            return self._finish(run, CheckOutcome.FAILED)
        finally:
            self._running = False
            logger.info("--- Appointment check finished ---")

    def _finish(self, run: CheckRun, outcome: CheckOutcome, *, record: bool = True) -> CheckRun:
        run.outcome = outcome
        run.finished_at = datetime.now(timezone.utc)
        if record:
            self.last_run = run
        return run


__all__ = ["AppointmentMonitor", "found_notification", "status_notification", "ERROR_MESSAGE"]
