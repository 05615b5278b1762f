"""
Provider double-booking detection.

Appointments have no stored duration; each one is taken to occupy the
conflict window either side of its start time.
"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import NON_TERMINAL_STATUSES
from .repository import AppointmentRepository
from .time_rules import SchedulingPolicy

logger = logging.getLogger(__name__)


class ConflictDetector:
    def __init__(self, db: Session, policy: SchedulingPolicy):
        self.db = db
        self.policy = policy
        self.repo = AppointmentRepository()

    def find_conflicts(
        self, provider_id: int, candidate: datetime, exclude_appointment_id: Optional[int] = None
    ):
        window = self.policy.conflict_window
        return self.repo.find_providers_appointments(
            self.db,
            provider_id,
            candidate - window,
            candidate + window,
            statuses=NON_TERMINAL_STATUSES,
            exclude_id=exclude_appointment_id,
        )

    def has_conflict(
        self, provider_id: int, candidate: datetime, exclude_appointment_id: Optional[int] = None
    ) -> bool:
        """True if another live booking of the provider lies within the window (inclusive)"""
        conflicts = self.find_conflicts(provider_id, candidate, exclude_appointment_id)
        if conflicts:
            logger.info(
                f"⚠️ Provider {provider_id} busy near {candidate:%Y-%m-%d %H:%M}: "
                f"appointment(s) {[a.id for a in conflicts]}"
            )
        return bool(conflicts)

    def available_slots(self, provider_id: int, day: date) -> list[datetime]:
        """Free slot start times of a provider within working hours on day"""
        if not self.policy.is_open_day(day):
            return []

        start, end = self.policy.day_bounds(day)
        window = self.policy.conflict_window
        booked = [
            a.scheduled_at
            for a in self.repo.find_providers_appointments(
                self.db, provider_id, start - window, end + window, statuses=NON_TERMINAL_STATUSES
            )
        ]

        # Same inclusive bound as has_conflict, so every listed slot is bookable
        slots = []
        tick = start
        while tick < end:
            if not any(abs(taken - tick) <= window for taken in booked):
                slots.append(tick)
            tick += self.policy.slot_step
        return slots
