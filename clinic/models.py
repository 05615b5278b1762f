from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class AppointmentStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No-Show"


# Statuses that still occupy a provider's slot
NON_TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.APPROVED, AppointmentStatus.SCHEDULED}
)
TERMINAL_STATUSES = frozenset(set(AppointmentStatus) - NON_TERMINAL_STATUSES)

# Statuses the morning reminder run picks up
REMINDABLE_STATUSES = frozenset({AppointmentStatus.APPROVED, AppointmentStatus.SCHEDULED})


class Branch(Base):
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    phone = Column(String(50), nullable=True)

    created_at = Column(DateTime, server_default=func.now())


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointments = relationship("Appointment", back_populates="patient")


class Provider(Base):
    """Clinician an appointment is booked against"""

    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    specialty = Column(String(255), nullable=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    appointments = relationship("Appointment", back_populates="provider")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=True)

    # Clinic local wall-clock time, no duration stored
    scheduled_at = Column(DateTime, nullable=False, index=True)
    reason = Column(Text, nullable=True)
    status = Column(String(20), default=AppointmentStatus.PENDING.value, nullable=False, index=True)

    # Provenance
    created_by_id = Column(Integer, nullable=True)
    created_by_role = Column(String(50), nullable=True)  # patient, receptionist, ...
    approved_by_id = Column(Integer, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient", back_populates="appointments")
    provider = relationship("Provider", back_populates="appointments")
    branch = relationship("Branch")

    @property
    def status_enum(self) -> AppointmentStatus:
        return AppointmentStatus(self.status)


class ReminderTask(Base):
    """Deferred notification obligation for an appointment or an invoice"""

    __tablename__ = "reminder_tasks"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(20), nullable=False)  # appointment, payment
    target_id = Column(Integer, nullable=False, index=True)
    remind_on = Column(Date, nullable=False)
    registered_at = Column(DateTime, server_default=func.now())
    fired_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
