"""Appointment repository - Database operations for appointments"""

import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, AppointmentStatus, Branch, Patient, Provider

# One lock per provider serializes conflict-check-then-write within this process
_provider_locks: defaultdict = defaultdict(threading.Lock)
_provider_locks_guard = threading.Lock()


def _lock_for(provider_id: int) -> threading.Lock:
    with _provider_locks_guard:
        return _provider_locks[provider_id]


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(
                joinedload(Appointment.patient),
                joinedload(Appointment.provider),
                joinedload(Appointment.branch),
            )
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def get_patient(db: Session, patient_id: int) -> Optional[Patient]:
        return db.query(Patient).filter(Patient.id == patient_id).first()

    @staticmethod
    def get_provider(db: Session, provider_id: int) -> Optional[Provider]:
        return db.query(Provider).filter(Provider.id == provider_id).first()

    @staticmethod
    def get_branch(db: Session, branch_id: int) -> Optional[Branch]:
        return db.query(Branch).filter(Branch.id == branch_id).first()

    @staticmethod
    def find_providers_appointments(
        db: Session,
        provider_id: int,
        start: datetime,
        end: datetime,
        statuses: Optional[Iterable[AppointmentStatus]] = None,
        exclude_id: Optional[int] = None,
    ) -> list[Appointment]:
        """Appointments of a provider with scheduled_at in [start, end]"""
        query = db.query(Appointment).filter(
            Appointment.provider_id == provider_id,
            Appointment.scheduled_at >= start,
            Appointment.scheduled_at <= end,
        )
        if statuses is not None:
            query = query.filter(Appointment.status.in_([s.value for s in statuses]))
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.order_by(Appointment.scheduled_at.asc()).all()

    @staticmethod
    def find_todays_appointments(
        db: Session, as_of: date, statuses: Iterable[AppointmentStatus]
    ) -> list[Appointment]:
        """Appointments on the calendar day of as_of in one of statuses"""
        day = as_of.date() if isinstance(as_of, datetime) else as_of
        start = datetime.combine(day, datetime.min.time())
        end = start + timedelta(days=1)
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.patient), joinedload(Appointment.provider))
            .filter(
                Appointment.scheduled_at >= start,
                Appointment.scheduled_at < end,
                Appointment.status.in_([s.value for s in statuses]),
            )
            .order_by(Appointment.scheduled_at.asc(), Appointment.id.asc())
            .all()
        )

    @staticmethod
    def create_appointment(db: Session, **fields) -> Appointment:
        appointment = Appointment(**fields)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def update_appointment_status(
        db: Session, appointment: Appointment, status: Optional[AppointmentStatus] = None, **fields
    ) -> Appointment:
        """Set status and any other columns passed, None values included"""
        if status is not None:
            appointment.status = status.value
        for key, value in fields.items():
            if hasattr(appointment, key):
                setattr(appointment, key, value)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    @contextmanager
    def provider_lock(db: Session, provider_id: int):
        """
        Hold the provider's slot lock for a conflict check and the write after it.

        On PostgreSQL a transaction-level advisory lock also serializes across
        processes; it is released when the write commits.
        """
        lock = _lock_for(provider_id)
        with lock:
            bind = db.get_bind()
            if bind is not None and bind.dialect.name == "postgresql":
                db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": provider_id})
            yield
