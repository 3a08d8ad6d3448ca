"""
Persistence of the single reference appointment.

The record is a small JSON document. Both operations fail soft: ``load``
returns ``None`` and ``save`` returns ``False`` instead of raising.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .models import END_OF_DAY, ReferenceAppointment

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Stored appointment could not be read or written."""


def _parse_timestamp(raw: str, field: str) -> datetime:
    try:
        # "Z" suffix is what older JS-written files contain
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as e:
        raise PersistenceError(f"Invalid {field} {raw!r}") from e


class AppointmentStore:
    """Reads and writes the reference appointment at a fixed path."""

    def __init__(self, path: Path, default_timezone: str) -> None:
        self.path = Path(path)
        self.default_timezone = default_timezone

    def load(self) -> Optional[ReferenceAppointment]:
        if not self.path.exists():
            logger.info("No saved appointment file at %s", self.path)
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            appointment = self._from_record(data)
        except (OSError, json.JSONDecodeError, PersistenceError, ValidationError) as e:
            logger.error("Failed to load appointment from %s: %s", self.path, e)
            return None
        logger.info(
            "Loaded saved appointment: %s (%s)",
            appointment.date.strftime("%Y-%m-%d"),
            appointment.comparison_time,
        )
        return appointment

    def save(self, appointment: ReferenceAppointment) -> bool:
        try:
            folder = self.path.parent
            folder.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(self._to_record(appointment), ensure_ascii=False, indent=2)

            # Write to a sibling temp file and swap it in, so a crash never leaves a half-written record
            tf = tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=folder, suffix=".tmp")
            try:
                with tf:
                    tf.write(payload)
                os.replace(tf.name, self.path)
            except OSError:
                with contextlib.suppress(OSError):
                    os.unlink(tf.name)
                raise
        except OSError as e:
            logger.error("Failed to save appointment to %s: %s", self.path, e)
            return False

        logger.info("Saved appointment to %s: %s", self.path, appointment.date.strftime("%Y-%m-%d"))
        return True

    @staticmethod
    def _to_record(appointment: ReferenceAppointment) -> dict[str, Any]:
        return {
            "date": appointment.date.astimezone(timezone.utc).isoformat(),
            "comparisonTime": appointment.comparison_time,
            "originalInputText": appointment.original_input_text,
            "savedAt": datetime.now(timezone.utc).isoformat(),
            "timezone": appointment.timezone,
        }

    def _from_record(self, data: Any) -> ReferenceAppointment:
        if not isinstance(data, dict):
            raise PersistenceError("Appointment record is not an object")

        # fullDate/time/originalString are the keys of the first file format
        raw_date = data.get("date") or data.get("fullDate")
        if not raw_date:
            raise PersistenceError("Appointment record has no date")

        saved_at = data.get("savedAt") or data.get("setAt")
        return ReferenceAppointment(
            timezone=data.get("timezone") or self.default_timezone,
            date=_parse_timestamp(str(raw_date), "date"),
            comparison_time=data.get("comparisonTime") or data.get("time") or END_OF_DAY,
            original_input_text=data.get("originalInputText") or data.get("originalString") or str(raw_date),
            set_at=_parse_timestamp(str(saved_at), "savedAt") if saved_at else datetime.now(timezone.utc),
        )


__all__ = ["AppointmentStore", "PersistenceError"]
