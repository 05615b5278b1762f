"""
Appointment lifecycle - Business logic for the booking workflow

Statuses: Pending → Approved/Rejected/Cancelled
          Approved/Scheduled → Cancelled (or Completed/No-Show by staff override)
Terminal: Rejected, Completed, Cancelled, No-Show

Patients book into Pending; staff bookings start Approved. Every transition
that sets a time goes through check_time_validity and the provider conflict
check under the provider lock. Notifications are best-effort and never roll
back a transition.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...clock import clinic_now, to_clinic_time
from ...config import CLINIC_NAME
from ...email_templates import appointment_confirmation_template
from ...models import NON_TERMINAL_STATUSES, Appointment, AppointmentStatus
from ...services.notification_service import DeliveryReport, NotificationGateway, send_notification
from ...services.reminder_service import ReminderDispatcher, format_appointment_time
from ...services.twilio_service import appointment_confirmation_sms
from ...shared.errors import InvalidTransitionError, NotFoundError, ValidationError
from .conflicts import ConflictDetector
from .permissions import BOOKING_STAFF, Action, Caller, require_permission
from .repository import AppointmentRepository
from .time_rules import SchedulingPolicy, check_time_validity

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Not specified"

# Standard operations and the statuses they may start from
ALLOWED_FROM: dict[Action, frozenset] = {
    Action.APPROVE: frozenset({AppointmentStatus.PENDING}),
    Action.REJECT: frozenset({AppointmentStatus.PENDING}),
    Action.RESCHEDULE: NON_TERMINAL_STATUSES,
    Action.CANCEL: NON_TERMINAL_STATUSES,
    Action.SET_STATUS: NON_TERMINAL_STATUSES,
}


def ensure_transition(appointment: Appointment, action: Action) -> None:
    if appointment.status_enum not in ALLOWED_FROM[action]:
        raise InvalidTransitionError(appointment.status, action.value)


class AppointmentService:
    """Service layer for the appointment state machine"""

    def __init__(
        self,
        db: Session,
        gateway: NotificationGateway,
        policy: Optional[SchedulingPolicy] = None,
        now: Callable[[], datetime] = clinic_now,
    ):
        self.db = db
        self.gateway = gateway
        self.policy = policy or SchedulingPolicy.from_config()
        self.now = now
        self.repo = AppointmentRepository()
        self.conflicts = ConflictDetector(db, self.policy)
        self.reminders = ReminderDispatcher(db, gateway)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: int, caller: Optional[Caller] = None) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment", appointment_id)
        if caller is not None:
            require_permission(caller, Action.VIEW, patient_id=appointment.patient_id)
        return appointment

    def list_appointments(self, caller: Caller, provider_id: int, day: date) -> list[Appointment]:
        require_permission(caller, Action.VIEW)
        start = datetime.combine(day, datetime.min.time())
        appointments = self.repo.find_providers_appointments(
            self.db, provider_id, start, start + timedelta(days=1) - timedelta(microseconds=1)
        )
        if not caller.is_staff:
            appointments = [a for a in appointments if a.patient_id == caller.patient_id]
        return appointments

    def available_slots(self, caller: Caller, provider_id: int, day: date) -> list[datetime]:
        require_permission(caller, Action.VIEW)
        now = self.now()
        return [slot for slot in self.conflicts.available_slots(provider_id, day) if slot > now]

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _validate_slot(
        self, provider_id: int, when: datetime, exclude_appointment_id: Optional[int] = None
    ) -> None:
        check_time_validity(when, self.now(), self.policy)
        if self.conflicts.has_conflict(provider_id, when, exclude_appointment_id):
            raise ValidationError("Doctor is not available at this time", code="conflict")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def create_appointment(
        self,
        caller: Caller,
        patient_id: int,
        provider_id: int,
        branch_id: Optional[int],
        scheduled_at: datetime,
        reason: Optional[str] = None,
    ) -> Appointment:
        """Book an appointment: Pending for patients, Approved for staff"""
        require_permission(caller, Action.CREATE, patient_id=patient_id)

        if not self.repo.get_patient(self.db, patient_id):
            raise NotFoundError("Patient", patient_id)
        if not self.repo.get_provider(self.db, provider_id):
            raise NotFoundError("Provider", provider_id)
        if branch_id is not None and not self.repo.get_branch(self.db, branch_id):
            raise NotFoundError("Branch", branch_id)

        when = to_clinic_time(scheduled_at)
        staff_booking = caller.role in BOOKING_STAFF
        status = AppointmentStatus.APPROVED if staff_booking else AppointmentStatus.PENDING

        fields = {
            "patient_id": patient_id,
            "provider_id": provider_id,
            "branch_id": branch_id,
            "scheduled_at": when,
            "reason": reason,
            "status": status.value,
            "created_by_id": caller.user_id,
            "created_by_role": caller.role.value,
        }
        if staff_booking:
            fields["approved_by_id"] = caller.user_id
            fields["approved_at"] = self.now()

        with self.repo.provider_lock(self.db, provider_id):
            self._validate_slot(provider_id, when)
            appointment = self.repo.create_appointment(self.db, **fields)

        logger.info(
            f"✅ Appointment {appointment.id} created ({status.value}) for patient {patient_id} "
            f"with provider {provider_id} at {when:%Y-%m-%d %H:%M} by {caller.role.value}"
        )

        if status == AppointmentStatus.APPROVED:
            await self._on_approved(appointment)
        return appointment

    async def approve(self, caller: Caller, appointment_id: int) -> Appointment:
        require_permission(caller, Action.APPROVE)
        appointment = self.get_appointment(appointment_id)
        ensure_transition(appointment, Action.APPROVE)

        appointment = self.repo.update_appointment_status(
            self.db,
            appointment,
            AppointmentStatus.APPROVED,
            approved_by_id=caller.user_id,
            approved_at=self.now(),
            rejection_reason=None,
        )
        logger.info(f"✅ Appointment {appointment.id} approved by user {caller.user_id}")

        await self._on_approved(appointment)
        return appointment

    async def reject(self, caller: Caller, appointment_id: int, reason: Optional[str] = None) -> Appointment:
        require_permission(caller, Action.REJECT)
        appointment = self.get_appointment(appointment_id)
        ensure_transition(appointment, Action.REJECT)

        appointment = self.repo.update_appointment_status(
            self.db,
            appointment,
            AppointmentStatus.REJECTED,
            rejection_reason=(reason or "").strip() or DEFAULT_REJECTION_REASON,
            approved_by_id=None,
            approved_at=None,
        )
        logger.info(f"🚫 Appointment {appointment.id} rejected: {appointment.rejection_reason}")
        return appointment

    async def reschedule(self, caller: Caller, appointment_id: int, new_time: datetime) -> Appointment:
        """Move a live appointment to a new time, keeping its status"""
        appointment = self.get_appointment(appointment_id)
        require_permission(caller, Action.RESCHEDULE, patient_id=appointment.patient_id)
        ensure_transition(appointment, Action.RESCHEDULE)

        when = to_clinic_time(new_time)
        with self.repo.provider_lock(self.db, appointment.provider_id):
            self._validate_slot(appointment.provider_id, when, exclude_appointment_id=appointment.id)
            previous = appointment.scheduled_at
            appointment = self.repo.update_appointment_status(self.db, appointment, scheduled_at=when)

        logger.info(
            f"🔁 Appointment {appointment.id} rescheduled {previous:%Y-%m-%d %H:%M} → {when:%Y-%m-%d %H:%M}"
        )
        return appointment

    async def cancel(self, caller: Caller, appointment_id: int) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        require_permission(caller, Action.CANCEL, patient_id=appointment.patient_id)
        ensure_transition(appointment, Action.CANCEL)

        appointment = self.repo.update_appointment_status(
            self.db, appointment, AppointmentStatus.CANCELLED, cancelled_at=self.now()
        )
        logger.info(f"🗑️ Appointment {appointment.id} cancelled by {caller.role.value} {caller.user_id}")
        return appointment

    async def set_status(
        self,
        caller: Caller,
        appointment_id: int,
        status: AppointmentStatus,
        scheduled_at: Optional[datetime] = None,
    ) -> Appointment:
        """Administrative override: any status from a live appointment, optional new time"""
        require_permission(caller, Action.SET_STATUS)
        appointment = self.get_appointment(appointment_id)
        ensure_transition(appointment, Action.SET_STATUS)

        fields = {}
        if status == AppointmentStatus.APPROVED and appointment.status_enum != AppointmentStatus.APPROVED:
            fields.update(approved_by_id=caller.user_id, approved_at=self.now(), rejection_reason=None)
        elif status == AppointmentStatus.CANCELLED:
            fields["cancelled_at"] = self.now()

        if scheduled_at is not None:
            when = to_clinic_time(scheduled_at)
            with self.repo.provider_lock(self.db, appointment.provider_id):
                if status in NON_TERMINAL_STATUSES:
                    self._validate_slot(appointment.provider_id, when, exclude_appointment_id=appointment.id)
                else:
                    check_time_validity(when, self.now(), self.policy)
                appointment = self.repo.update_appointment_status(
                    self.db, appointment, status, scheduled_at=when, **fields
                )
        else:
            appointment = self.repo.update_appointment_status(self.db, appointment, status, **fields)

        logger.info(f"🛠️ Appointment {appointment.id} status set to {status.value} by user {caller.user_id}")
        return appointment

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    async def _on_approved(self, appointment: Appointment) -> None:
        """Confirmation notification plus reminder registration"""
        try:
            await self.send_confirmation(appointment)
        except Exception as e:
            logger.error(f"❌ Confirmation failed for appointment {appointment.id}: {e}")

        try:
            await self.reminders.register_appointment_reminder(appointment)
        except Exception as e:
            logger.error(f"❌ Reminder registration failed for appointment {appointment.id}: {e}")

    async def send_confirmation(self, appointment: Appointment) -> DeliveryReport:
        appointment = self.get_appointment(appointment.id)
        patient = appointment.patient
        provider_name = appointment.provider.full_name if appointment.provider else "your doctor"
        branch_name = appointment.branch.name if appointment.branch else "our clinic"
        reason = appointment.reason or "consultation"
        when = format_appointment_time(appointment.scheduled_at)

        return await send_notification(
            self.gateway,
            recipient_name=patient.full_name,
            email=patient.email,
            phone=patient.phone,
            notification_type="appointment_confirmation",
            subject=f"Appointment Confirmation - {CLINIC_NAME}",
            email_body=appointment_confirmation_template(
                patient.full_name, when, provider_name, branch_name, reason
            ),
            sms_body=appointment_confirmation_sms(
                patient.full_name, when, provider_name, branch_name, reason
            ),
        )
