from datetime import datetime

import pytest

from clinic.domain.scheduling.permissions import PERMISSIONS, Action, Role
from clinic.domain.scheduling.service import AppointmentService
from clinic.models import AppointmentStatus, ReminderTask
from clinic.shared.errors import AuthorizationError, InvalidTransitionError, NotFoundError, ValidationError

from .conftest import DOCTOR, NOW, PATIENT_7, PATIENT_8, RECEPTIONIST, RecordingGateway

MONDAY_10 = datetime(2025, 3, 10, 10, 0)


@pytest.mark.asyncio
async def test_staff_booking_is_approved_and_notified(service, gateway, clinic_data):
    appointment = await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10, "Checkup")

    assert appointment.status == AppointmentStatus.APPROVED.value
    assert appointment.approved_by_id == RECEPTIONIST.user_id
    assert appointment.approved_at == NOW
    assert appointment.created_by_role == "receptionist"

    # confirmation plus the immediately fired reminder, each over both channels
    subjects = [e["subject"] for e in gateway.emails]
    assert any("Confirmation" in s for s in subjects)
    assert any("Reminder" in s for s in subjects)
    assert all(s["to"] == "+94771234567" for s in gateway.sms)
    assert len(gateway.sms) == 2

    task = clinic_data.query(ReminderTask).one()
    assert task.category == "appointment"
    assert task.target_id == appointment.id
    assert task.remind_on == MONDAY_10.date()
    assert task.fired_at is not None
    assert task.last_error is None


@pytest.mark.asyncio
async def test_patient_booking_waits_for_approval(service, gateway, clinic_data):
    appointment = await service.create_appointment(PATIENT_7, 7, 3, 1, MONDAY_10)

    assert appointment.status == AppointmentStatus.PENDING.value
    assert appointment.approved_by_id is None
    assert gateway.emails == [] and gateway.sms == []
    assert clinic_data.query(ReminderTask).count() == 0

    approved = await service.approve(RECEPTIONIST, appointment.id)
    assert approved.status == AppointmentStatus.APPROVED.value
    assert approved.approved_by_id == RECEPTIONIST.user_id
    assert len(gateway.emails) == 2
    assert clinic_data.query(ReminderTask).count() == 1


@pytest.mark.asyncio
async def test_patient_cannot_book_for_someone_else(service):
    with pytest.raises(AuthorizationError):
        await service.create_appointment(PATIENT_7, 8, 3, 1, MONDAY_10)


@pytest.mark.asyncio
async def test_unknown_references_are_not_found(service):
    with pytest.raises(NotFoundError):
        await service.create_appointment(RECEPTIONIST, 99, 3, 1, MONDAY_10)
    with pytest.raises(NotFoundError):
        await service.create_appointment(RECEPTIONIST, 7, 99, 1, MONDAY_10)
    with pytest.raises(NotFoundError):
        await service.create_appointment(RECEPTIONIST, 7, 3, 99, MONDAY_10)


@pytest.mark.asyncio
async def test_double_booking_is_refused(service):
    await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10)

    with pytest.raises(ValidationError) as exc:
        await service.create_appointment(RECEPTIONIST, 8, 3, 1, datetime(2025, 3, 10, 10, 15))
    assert exc.value.code == "conflict"
    assert exc.value.message == "Doctor is not available at this time"

    later = await service.create_appointment(RECEPTIONIST, 8, 3, 1, datetime(2025, 3, 10, 10, 45))
    assert later.status == AppointmentStatus.APPROVED.value


@pytest.mark.asyncio
async def test_pending_bookings_hold_the_slot(service):
    await service.create_appointment(PATIENT_7, 7, 3, 1, MONDAY_10)
    with pytest.raises(ValidationError):
        await service.create_appointment(PATIENT_8, 8, 3, 1, MONDAY_10)


@pytest.mark.asyncio
async def test_invalid_times_are_refused(service):
    with pytest.raises(ValidationError) as exc:
        await service.create_appointment(RECEPTIONIST, 7, 3, 1, datetime(2025, 2, 28, 10, 0))
    assert exc.value.code == "past_time"

    with pytest.raises(ValidationError) as exc:
        await service.create_appointment(RECEPTIONIST, 7, 3, 1, datetime(2025, 3, 10, 18, 0))
    assert exc.value.code == "outside_working_hours"


@pytest.mark.asyncio
async def test_reject_defaults_reason(service):
    appointment = await service.create_appointment(PATIENT_7, 7, 3, 1, MONDAY_10)
    rejected = await service.reject(RECEPTIONIST, appointment.id)

    assert rejected.status == AppointmentStatus.REJECTED.value
    assert rejected.rejection_reason == "Not specified"

    # freed slot can be booked again
    await service.create_appointment(RECEPTIONIST, 8, 3, 1, MONDAY_10)


@pytest.mark.asyncio
async def test_reject_keeps_given_reason(service):
    appointment = await service.create_appointment(PATIENT_7, 7, 3, 1, MONDAY_10)
    rejected = await service.reject(RECEPTIONIST, appointment.id, "Doctor on leave")
    assert rejected.rejection_reason == "Doctor on leave"


@pytest.mark.asyncio
async def test_approve_and_reject_only_from_pending(service):
    appointment = await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10)
    with pytest.raises(InvalidTransitionError):
        await service.approve(RECEPTIONIST, appointment.id)
    with pytest.raises(InvalidTransitionError):
        await service.reject(RECEPTIONIST, appointment.id)


@pytest.mark.asyncio
async def test_patient_cannot_approve(service):
    appointment = await service.create_appointment(PATIENT_7, 7, 3, 1, MONDAY_10)
    with pytest.raises(AuthorizationError):
        await service.approve(PATIENT_7, appointment.id)


@pytest.mark.asyncio
async def test_reschedule_excludes_itself(service):
    appointment = await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10)
    moved = await service.reschedule(PATIENT_7, appointment.id, datetime(2025, 3, 10, 10, 15))

    assert moved.scheduled_at == datetime(2025, 3, 10, 10, 15)
    assert moved.status == AppointmentStatus.APPROVED.value


@pytest.mark.asyncio
async def test_reschedule_into_busy_slot_is_refused(service):
    await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10)
    other = await service.create_appointment(RECEPTIONIST, 8, 3, 1, datetime(2025, 3, 10, 14, 0))

    with pytest.raises(ValidationError) as exc:
        await service.reschedule(RECEPTIONIST, other.id, datetime(2025, 3, 10, 10, 30))
    assert exc.value.code == "conflict"


@pytest.mark.asyncio
async def test_patient_cannot_touch_another_patients_booking(service):
    appointment = await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10)
    with pytest.raises(AuthorizationError):
        await service.cancel(PATIENT_8, appointment.id)
    with pytest.raises(AuthorizationError):
        await service.reschedule(PATIENT_8, appointment.id, datetime(2025, 3, 11, 10, 0))
    with pytest.raises(AuthorizationError):
        service.get_appointment(appointment.id, caller=PATIENT_8)


@pytest.mark.asyncio
async def test_cancel_is_terminal(service):
    appointment = await service.create_appointment(PATIENT_7, 7, 3, 1, MONDAY_10)
    cancelled = await service.cancel(PATIENT_7, appointment.id)

    assert cancelled.status == AppointmentStatus.CANCELLED.value
    assert cancelled.cancelled_at == NOW

    with pytest.raises(InvalidTransitionError):
        await service.cancel(PATIENT_7, appointment.id)
    with pytest.raises(InvalidTransitionError):
        await service.reschedule(PATIENT_7, appointment.id, datetime(2025, 3, 11, 10, 0))
    with pytest.raises(InvalidTransitionError):
        await service.set_status(DOCTOR, appointment.id, AppointmentStatus.APPROVED)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "terminal", [AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW, AppointmentStatus.CANCELLED]
)
async def test_set_status_closes_appointment(service, terminal):
    appointment = await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10)
    closed = await service.set_status(DOCTOR, appointment.id, terminal)
    assert closed.status == terminal.value

    with pytest.raises(InvalidTransitionError):
        await service.set_status(DOCTOR, appointment.id, AppointmentStatus.SCHEDULED)


@pytest.mark.asyncio
async def test_set_status_with_new_time_checks_conflicts(service):
    await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10)
    other = await service.create_appointment(PATIENT_8, 8, 3, 1, datetime(2025, 3, 10, 15, 0))

    with pytest.raises(ValidationError):
        await service.set_status(DOCTOR, other.id, AppointmentStatus.SCHEDULED, datetime(2025, 3, 10, 10, 20))

    scheduled = await service.set_status(
        DOCTOR, other.id, AppointmentStatus.SCHEDULED, datetime(2025, 3, 10, 16, 0)
    )
    assert scheduled.status == AppointmentStatus.SCHEDULED.value
    assert scheduled.scheduled_at == datetime(2025, 3, 10, 16, 0)


@pytest.mark.asyncio
async def test_set_status_to_approved_stamps_approver(service):
    appointment = await service.create_appointment(PATIENT_7, 7, 3, 1, MONDAY_10)
    approved = await service.set_status(DOCTOR, appointment.id, AppointmentStatus.APPROVED)
    assert approved.approved_by_id == DOCTOR.user_id
    assert approved.approved_at == NOW


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_booking(service, gateway, clinic_data):
    gateway.fail_email = True
    gateway.fail_sms = True

    appointment = await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10)
    assert appointment.status == AppointmentStatus.APPROVED.value

    task = clinic_data.query(ReminderTask).one()
    assert "unavailable" in task.last_error


@pytest.mark.asyncio
async def test_list_appointments_filters_patients_to_their_own(service):
    await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10)
    await service.create_appointment(RECEPTIONIST, 8, 3, 1, datetime(2025, 3, 10, 14, 0))

    assert len(service.list_appointments(RECEPTIONIST, 3, MONDAY_10.date())) == 2
    own = service.list_appointments(PATIENT_7, 3, MONDAY_10.date())
    assert [a.patient_id for a in own] == [7]


def test_available_slots_hide_past_times(service):
    # NOW is 09:00 on 1 March
    slots = service.available_slots(PATIENT_8, 3, NOW.date())
    assert slots[0] == datetime(2025, 3, 1, 9, 30)


class BrokenEmailGateway(RecordingGateway):
    async def send_email(self, to, subject, body):
        raise RuntimeError("resend client crashed")


@pytest.mark.asyncio
async def test_failed_confirmation_still_registers_reminder(clinic_data, policy):
    service = AppointmentService(clinic_data, BrokenEmailGateway(), policy=policy, now=lambda: NOW)

    appointment = await service.create_appointment(RECEPTIONIST, 7, 3, 1, MONDAY_10)

    task = clinic_data.query(ReminderTask).one()
    assert task.target_id == appointment.id
    assert task.fired_at is not None
    assert "resend client crashed" in task.last_error


def test_available_slots_require_view_permission(service, monkeypatch):
    monkeypatch.setitem(PERMISSIONS, Action.VIEW, frozenset({Role.RECEPTIONIST}))

    assert service.available_slots(RECEPTIONIST, 3, MONDAY_10.date())
    with pytest.raises(AuthorizationError):
        service.available_slots(PATIENT_8, 3, MONDAY_10.date())
