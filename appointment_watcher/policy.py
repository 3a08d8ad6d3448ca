"""Comparison of the earliest advertised slot against the reference appointment."""

from __future__ import annotations

from typing import Sequence
from zoneinfo import ZoneInfo

from .models import CandidateAppointment, CheckOutcome, Decision, ReferenceAppointment


def decide(reference: ReferenceAppointment, candidates: Sequence[CandidateAppointment]) -> Decision:
    """
    Pick the earliest candidate and compare calendar days in the reference's zone.

    Time of day is ignored: the reference time is an end-of-day marker, not a preference.
    """
    if not candidates:
        return Decision(outcome=CheckOutcome.NO_CANDIDATES_FOUND)

    # min() keeps the first of equal keys, so document order breaks ties
    earliest = min(candidates, key=lambda c: c.date)

    zone = ZoneInfo(reference.timezone)
    found_day = earliest.date.astimezone(zone).date()
    reference_day = reference.date.astimezone(zone).date()

    if found_day < reference_day:
        return Decision(outcome=CheckOutcome.EARLIER_FOUND, earliest=earliest)
    return Decision(outcome=CheckOutcome.NO_EARLIER_FOUND, earliest=earliest)


__all__ = ["decide"]
