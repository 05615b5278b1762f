"""Appointment router - FastAPI endpoints for the booking workflow"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_caller
from ...database import get_db
from ...services.notification_service import NotificationGateway
from ...shared.errors import ValidationError
from .permissions import Caller
from .schemas import (
    AppointmentCreate,
    AppointmentReject,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AvailabilityResponse,
)
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_notification_gateway() -> NotificationGateway:
    return NotificationGateway()


def get_appointment_service(
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_notification_gateway),
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db, gateway)


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    provider_id: int = Query(...),
    day: date = Query(...),
    caller: Caller = Depends(get_current_caller),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments of a provider on one day (patients only see their own)"""
    appointments = service.list_appointments(caller, provider_id, day)
    return [AppointmentResponse.from_model(a) for a in appointments]


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    provider_id: int = Query(...),
    day: date = Query(...),
    caller: Caller = Depends(get_current_caller),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Free half-hour slots of a provider within working hours"""
    slots = service.available_slots(caller, provider_id, day)
    return AvailabilityResponse(providerId=provider_id, day=day, slots=slots)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    caller: Caller = Depends(get_current_caller),
    service: AppointmentService = Depends(get_appointment_service),
):
    return AppointmentResponse.from_model(service.get_appointment(appointment_id, caller))


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    caller: Caller = Depends(get_current_caller),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book an appointment. Staff bookings are approved immediately."""
    patient_id = data.patientId
    if not caller.is_staff and patient_id is None:
        patient_id = caller.patient_id
    if patient_id is None:
        raise ValidationError("patientId is required", code="missing_patient")

    appointment = await service.create_appointment(
        caller,
        patient_id=patient_id,
        provider_id=data.providerId,
        branch_id=data.branchId,
        scheduled_at=data.scheduledAt,
        reason=data.reason,
    )
    return AppointmentResponse.from_model(appointment)


@router.post("/{appointment_id}/approve", response_model=AppointmentResponse)
async def approve_appointment(
    appointment_id: int,
    caller: Caller = Depends(get_current_caller),
    service: AppointmentService = Depends(get_appointment_service),
):
    return AppointmentResponse.from_model(await service.approve(caller, appointment_id))


@router.post("/{appointment_id}/reject", response_model=AppointmentResponse)
async def reject_appointment(
    appointment_id: int,
    data: AppointmentReject,
    caller: Caller = Depends(get_current_caller),
    service: AppointmentService = Depends(get_appointment_service),
):
    return AppointmentResponse.from_model(await service.reject(caller, appointment_id, data.reason))


@router.patch("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    data: AppointmentReschedule,
    caller: Caller = Depends(get_current_caller),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.reschedule(caller, appointment_id, data.scheduledAt)
    return AppointmentResponse.from_model(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    caller: Caller = Depends(get_current_caller),
    service: AppointmentService = Depends(get_appointment_service),
):
    return AppointmentResponse.from_model(await service.cancel(caller, appointment_id))


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    caller: Caller = Depends(get_current_caller),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Administrative override, e.g. marking Completed or No-Show"""
    appointment = await service.set_status(caller, appointment_id, data.status, data.scheduledAt)
    return AppointmentResponse.from_model(appointment)
