"""
Pydantic models for the appointment-watcher domain.
"""

from __future__ import annotations

from datetime import date as date_type, datetime, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


END_OF_DAY = "23:59"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReferenceAppointment(BaseModel):
    """The appointment the user currently holds; the comparison baseline."""

    model_config = ConfigDict(frozen=True)

    # timezone is declared first so the date validator can see it
    timezone: str
    date: datetime
    comparison_time: str = END_OF_DAY
    original_input_text: str
    set_at: datetime = Field(default_factory=_utcnow)

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone {value!r}") from e
        return value

    @field_validator("date")
    @classmethod
    def _date_in_zone(cls, value: datetime, info: ValidationInfo) -> datetime:
        tz_name = info.data.get("timezone")
        if not tz_name:
            return value
        zone = ZoneInfo(tz_name)
        # Naive values are wall time in the appointment's own zone
        if value.tzinfo is None:
            return value.replace(tzinfo=zone)
        return value.astimezone(zone)

    @field_validator("set_at")
    @classmethod
    def _aware_set_at(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def day(self) -> date_type:
        return self.date.date()


class CandidateAppointment(BaseModel):
    """Single bookable slot parsed from the booking page."""

    model_config = ConfigDict(frozen=True)

    date: datetime
    display_time: str
    raw_date_token: str


class CheckOutcome(str, Enum):
    SKIPPED_BUSY = "skipped_busy"
    SKIPPED_NO_REFERENCE = "skipped_no_reference"
    NO_CANDIDATES_FOUND = "no_candidates_found"
    EARLIER_FOUND = "earlier_found"
    NO_EARLIER_FOUND = "no_earlier_found"
    FAILED = "failed"


class Decision(BaseModel):
    """Result of comparing parsed candidates against the reference."""

    model_config = ConfigDict(frozen=True)

    outcome: CheckOutcome
    earliest: Optional[CandidateAppointment] = None


class CheckRun(BaseModel):
    """One fetch-parse-decide-notify pass."""

    trigger: str = "scheduled"
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None
    outcome: Optional[CheckOutcome] = None
    earliest: Optional[CandidateAppointment] = None
    error: Optional[str] = None


class ConnectionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class Notification(BaseModel):
    """Channel-neutral message; push channels may use the shorter ``push_body``."""

    title: str
    text: str
    push_body: Optional[str] = None


__all__ = [
    "END_OF_DAY",
    "ReferenceAppointment",
    "CandidateAppointment",
    "CheckOutcome",
    "Decision",
    "CheckRun",
    "ConnectionState",
    "Notification",
]
