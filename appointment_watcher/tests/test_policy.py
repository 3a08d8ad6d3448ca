from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from appointment_watcher.models import CandidateAppointment, CheckOutcome, ReferenceAppointment
from appointment_watcher.policy import decide

NAIROBI = ZoneInfo("Africa/Nairobi")


def _reference(day: int = 10) -> ReferenceAppointment:
    return ReferenceAppointment(
        timezone="Africa/Nairobi",
        date=datetime(2025, 10, day, tzinfo=NAIROBI),
        original_input_text=f"2025-10-{day:02d}",
    )


def _slot(day: int, hour: int = 9, minute: int = 0, month: int = 10) -> CandidateAppointment:
    when = datetime(2025, month, day, hour, minute, tzinfo=NAIROBI)
    return CandidateAppointment(
        date=when,
        display_time=when.strftime("%I:%M %p"),
        raw_date_token=f"{month}/{day}/2025 {when:%I:%M:%S %p}",
    )


def test_no_candidates() -> None:
    decision = decide(_reference(), [])

    assert decision.outcome is CheckOutcome.NO_CANDIDATES_FOUND
    assert decision.earliest is None


def test_earlier_day_is_found() -> None:
    decision = decide(_reference(), [_slot(12), _slot(25, month=9)])

    assert decision.outcome is CheckOutcome.EARLIER_FOUND
    assert decision.earliest is not None
    assert decision.earliest.date.month == 9


def test_same_day_is_not_earlier_regardless_of_time() -> None:
    decision = decide(_reference(), [_slot(10, hour=8)])

    assert decision.outcome is CheckOutcome.NO_EARLIER_FOUND
    assert decision.earliest is not None
    assert decision.earliest.date.day == 10


def test_later_day_reports_earliest_available() -> None:
    decision = decide(_reference(), [_slot(20), _slot(15, hour=14)])

    assert decision.outcome is CheckOutcome.NO_EARLIER_FOUND
    assert decision.earliest is not None
    assert decision.earliest.date.day == 15


def test_late_evening_of_previous_day_is_earlier() -> None:
    decision = decide(_reference(), [_slot(9, hour=23, minute=30)])

    assert decision.outcome is CheckOutcome.EARLIER_FOUND


def test_ties_keep_first_in_document_order() -> None:
    first = _slot(5)
    second = CandidateAppointment(date=first.date, display_time="duplicate", raw_date_token="dup")

    decision = decide(_reference(), [first, second])

    assert decision.earliest is first
