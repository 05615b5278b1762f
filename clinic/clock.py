"""Clinic-local wall clock. Appointment times are stored naive in this zone."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from .config import CLINIC_TIMEZONE


def clinic_tz() -> ZoneInfo:
    return ZoneInfo(CLINIC_TIMEZONE)


def clinic_now() -> datetime:
    """Current naive local time in the clinic timezone"""
    return datetime.now(timezone.utc).astimezone(clinic_tz()).replace(tzinfo=None)


def to_clinic_time(value: datetime) -> datetime:
    """Normalize an incoming datetime to naive clinic-local time.

    Naive values are taken to already be clinic-local.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(clinic_tz()).replace(tzinfo=None)
