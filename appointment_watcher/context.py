"""Explicit application state shared by the orchestrator and the command handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .models import ReferenceAppointment
from .store import AppointmentStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    store: AppointmentStore
    reference: Optional[ReferenceAppointment] = None

    def load_reference(self) -> Optional[ReferenceAppointment]:
        self.reference = self.store.load()
        if self.reference is None:
            logger.info("Starting with no saved appointment.")
        return self.reference

    def set_reference(self, appointment: ReferenceAppointment) -> bool:
        """Persist ``appointment`` and make it the comparison baseline. False if saving failed."""
        if not self.store.save(appointment):
            return False
        self.reference = appointment
        return True


__all__ = ["AppContext"]
