"""
Extraction of bookable slots from the booking page HTML.

The booking page renders every free slot as a radio button with a label::

    <label for="scheduler_9/25/2025 9:00:00 AM">9:00 AM</label>

Only that shape is understood. Anything else yields no candidates.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import List, Protocol
from zoneinfo import ZoneInfo

from .models import CandidateAppointment

logger = logging.getLogger(__name__)


SLOT_DATE_FORMAT = "%m/%d/%Y %I:%M:%S %p"  # e.g. "9/25/2025 9:00:00 AM"
_SLOT_LABEL_RE = re.compile(r'<label for="scheduler_([^"]+)">\s*([^<]+?)\s*</label>')


class ParseError(ValueError):
    """A slot token did not match the expected date-time format."""


class DocumentParser(Protocol):
    def extract(self, document: str) -> List[CandidateAppointment]: ...


def parse_slot_date(token: str, zone: ZoneInfo) -> datetime:
    """Parse ``M/D/YYYY h:mm:ss AM|PM`` as wall time in ``zone``."""
    try:
        naive = datetime.strptime(token.strip(), SLOT_DATE_FORMAT)
    except ValueError as e:
        raise ParseError(f"Unparseable slot date {token!r}") from e
    return naive.replace(tzinfo=zone)


class RegexDocumentParser:
    """Regex adapter for the scheduler label markup. Brittle by nature."""

    def __init__(self, zone: ZoneInfo) -> None:
        self.zone = zone

    def extract(self, document: str) -> List[CandidateAppointment]:
        candidates: List[CandidateAppointment] = []
        for match in _SLOT_LABEL_RE.finditer(document):
            token, label = match.group(1), match.group(2)
            try:
                slot_date = parse_slot_date(token, self.zone)
            except ParseError as e:
                # drop the irregular entry, keep the rest of the page
                logger.warning("Skipping slot: %s", e)
                continue
            candidates.append(
                CandidateAppointment(date=slot_date, display_time=label.strip(), raw_date_token=token)
            )
        logger.debug("Extracted %s candidate slots", len(candidates))
        return candidates


__all__ = ["DocumentParser", "RegexDocumentParser", "ParseError", "parse_slot_date", "SLOT_DATE_FORMAT"]
