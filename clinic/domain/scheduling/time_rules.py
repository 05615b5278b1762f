"""Canonical time-validity predicate shared by every mutating booking path"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ...config import (
    CLINIC_CLOSE_HOUR,
    CLINIC_CLOSED_WEEKDAYS,
    CLINIC_OPEN_HOUR,
    CONFLICT_WINDOW_MINUTES,
    SLOT_STEP_MINUTES,
)
from ...shared.errors import ValidationError

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def parse_weekdays(raw: str) -> frozenset:
    """Parse "5,6" into {5, 6}; blank means open every day"""
    days = set()
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        day = int(part)
        if day < 0 or day > 6:
            raise ValueError(f"Weekday out of range (0-6): {day}")
        days.add(day)
    return frozenset(days)


@dataclass(frozen=True)
class SchedulingPolicy:
    """Working hours and slot geometry of the clinic"""

    open_hour: int = 8
    close_hour: int = 18
    closed_weekdays: frozenset = field(default_factory=frozenset)
    conflict_window: timedelta = timedelta(minutes=30)
    slot_step: timedelta = timedelta(minutes=30)

    def __post_init__(self):
        if not 0 <= self.open_hour < self.close_hour <= 24:
            raise ValueError(
                f"Invalid working hours: open={self.open_hour}, close={self.close_hour}"
            )

    @classmethod
    def from_config(cls) -> "SchedulingPolicy":
        return cls(
            open_hour=CLINIC_OPEN_HOUR,
            close_hour=CLINIC_CLOSE_HOUR,
            closed_weekdays=parse_weekdays(CLINIC_CLOSED_WEEKDAYS),
            conflict_window=timedelta(minutes=CONFLICT_WINDOW_MINUTES),
            slot_step=timedelta(minutes=SLOT_STEP_MINUTES),
        )

    def is_open_day(self, day: date) -> bool:
        return day.weekday() not in self.closed_weekdays

    def is_working_hour(self, when: datetime) -> bool:
        return self.open_hour <= when.hour < self.close_hour

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """Opening and closing instants of a day"""
        start = datetime.combine(day, datetime.min.time()).replace(hour=self.open_hour)
        end = datetime.combine(day, datetime.min.time()) + timedelta(hours=self.close_hour)
        return start, end


def check_time_validity(when: datetime, now: datetime, policy: SchedulingPolicy) -> None:
    """
    Reject a candidate appointment time that cannot be booked.

    Raises:
        ValidationError: time is not strictly in the future, falls on a closed
            weekday, or lies outside [open_hour, close_hour)
    """
    if when <= now:
        raise ValidationError("Appointment date must be in the future", code="past_time")

    if not policy.is_open_day(when.date()):
        raise ValidationError(
            f"The clinic is closed on {WEEKDAY_NAMES[when.weekday()]}s", code="closed_day"
        )

    if not policy.is_working_hour(when):
        raise ValidationError(
            f"Appointments must be scheduled between {policy.open_hour:02d}:00 "
            f"and {policy.close_hour:02d}:00",
            code="outside_working_hours",
        )
