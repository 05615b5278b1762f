"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import Appointment, AppointmentStatus


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment"""

    patientId: Optional[int] = None  # defaults to the caller for patient bookings
    providerId: int
    branchId: Optional[int] = None
    scheduledAt: datetime
    reason: Optional[str] = None


class AppointmentReject(BaseModel):
    reason: Optional[str] = None


class AppointmentReschedule(BaseModel):
    scheduledAt: datetime


class AppointmentStatusUpdate(BaseModel):
    """Administrative status override"""

    status: AppointmentStatus
    scheduledAt: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def accept_any_case(cls, v):
        if isinstance(v, str):
            for status in AppointmentStatus:
                if status.value.lower() == v.strip().lower():
                    return status
        return v


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: int
    patientId: int
    providerId: int
    branchId: Optional[int]
    scheduledAt: datetime
    reason: Optional[str]
    status: str
    createdByRole: Optional[str] = None
    approvedById: Optional[int] = None
    approvedAt: Optional[datetime] = None
    rejectionReason: Optional[str] = None
    cancelledAt: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            patientId=appointment.patient_id,
            providerId=appointment.provider_id,
            branchId=appointment.branch_id,
            scheduledAt=appointment.scheduled_at,
            reason=appointment.reason,
            status=appointment.status,
            createdByRole=appointment.created_by_role,
            approvedById=appointment.approved_by_id,
            approvedAt=appointment.approved_at,
            rejectionReason=appointment.rejection_reason,
            cancelledAt=appointment.cancelled_at,
            created_at=appointment.created_at,
        )


class AvailabilityResponse(BaseModel):
    providerId: int
    day: date
    slots: list[datetime]
