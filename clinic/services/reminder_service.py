"""
Reminder dispatcher for appointments and overdue invoices.

Two entry points share the same per-item logic:
- the daily scans (run from the arq worker) select every due record
- the ad hoc path sends for a single known record at approval/invoice time

The scans keep no "already sent" marker; running one twice on the same day
re-sends the same reminders.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..clock import clinic_now
from ..config import CLINIC_NAME, CURRENCY_LABEL
from ..domain.billing.repository import InvoiceRepository
from ..domain.scheduling.repository import AppointmentRepository
from ..email_templates import appointment_reminder_template, payment_reminder_template
from ..models import REMINDABLE_STATUSES, Appointment, ReminderTask
from ..models_invoice import Invoice
from ..shared.errors import NotFoundError
from .notification_service import DeliveryReport, NotificationGateway, send_notification
from .twilio_service import appointment_reminder_sms, payment_reminder_sms

logger = logging.getLogger(__name__)

APPOINTMENT_CATEGORY = "appointment"
PAYMENT_CATEGORY = "payment"


@dataclass
class ReminderRunSummary:
    category: str
    as_of: date
    due: int = 0
    notified: int = 0
    failed: int = 0
    item_ids: list = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "category": self.category,
            "as_of": self.as_of.isoformat(),
            "due": self.due,
            "notified": self.notified,
            "failed": self.failed,
            "item_ids": list(self.item_ids),
        }


def format_appointment_time(when: datetime) -> str:
    return f"{when:%A, %B} {when.day}, {when:%Y} at {when:%I:%M %p}"


def format_amount(amount) -> str:
    return f"{CURRENCY_LABEL} {float(amount):,.2f}"


def _as_day(as_of) -> date:
    return as_of.date() if isinstance(as_of, datetime) else as_of


class ReminderDispatcher:
    def __init__(self, db: Session, gateway: NotificationGateway):
        self.db = db
        self.gateway = gateway
        self.appointments = AppointmentRepository()
        self.invoices = InvoiceRepository()

    # ------------------------------------------------------------------
    # Due selection
    # ------------------------------------------------------------------

    def due_appointments(self, as_of) -> list[Appointment]:
        """Approved/scheduled appointments on as_of's calendar day"""
        return self.appointments.find_todays_appointments(self.db, _as_day(as_of), REMINDABLE_STATUSES)

    def due_invoices(self, as_of) -> list[Invoice]:
        """Unpaid invoices with a positive balance that fell due before as_of"""
        return self.invoices.find_due_invoices(self.db, _as_day(as_of))

    # ------------------------------------------------------------------
    # Per-item dispatch
    # ------------------------------------------------------------------

    async def notify_appointment(self, appointment: Appointment) -> DeliveryReport:
        patient = appointment.patient
        provider_name = appointment.provider.full_name if appointment.provider else "your doctor"
        when = format_appointment_time(appointment.scheduled_at)

        return await send_notification(
            self.gateway,
            recipient_name=patient.full_name,
            email=patient.email,
            phone=patient.phone,
            notification_type="appointment_reminder",
            subject=f"Appointment Reminder: {CLINIC_NAME}",
            email_body=appointment_reminder_template(patient.full_name, when, provider_name),
            sms_body=appointment_reminder_sms(patient.full_name, when, provider_name),
        )

    async def notify_invoice(self, invoice: Invoice) -> DeliveryReport:
        patient = invoice.patient
        amount = format_amount(invoice.outstanding_amount)
        due = f"{invoice.due_date:%B} {invoice.due_date.day}, {invoice.due_date:%Y}" if invoice.due_date else "on receipt"

        return await send_notification(
            self.gateway,
            recipient_name=patient.full_name,
            email=patient.email,
            phone=patient.phone,
            notification_type="payment_reminder",
            subject=f"Payment Reminder: {CLINIC_NAME}",
            email_body=payment_reminder_template(patient.full_name, amount, due, invoice.invoice_number),
            sms_body=payment_reminder_sms(patient.full_name, amount, invoice.invoice_number),
        )

    async def _dispatch_all(self, summary: ReminderRunSummary, items, notify) -> ReminderRunSummary:
        summary.due = len(items)
        for item in items:
            summary.item_ids.append(item.id)
            try:
                report = await notify(item)
            except Exception as e:
                # One bad record must not stop the rest of the run
                summary.failed += 1
                logger.error(f"❌ {summary.category} reminder for #{item.id} failed: {e}")
                continue
            if report.email_sent or report.sms_sent:
                summary.notified += 1
            if report.failed:
                summary.failed += 1
        return summary

    # ------------------------------------------------------------------
    # Daily scans
    # ------------------------------------------------------------------

    async def run_daily_appointment_reminders(self, as_of=None) -> ReminderRunSummary:
        day = _as_day(as_of or clinic_now())
        logger.info(f"🕗 Running appointment reminder job for {day}")

        appointments = self.due_appointments(day)
        logger.info(f"📅 Found {len(appointments)} appointments for {day}")

        summary = await self._dispatch_all(
            ReminderRunSummary(APPOINTMENT_CATEGORY, day), appointments, self.notify_appointment
        )
        logger.info(f"✅ Appointment reminders done: {summary.as_dict()}")
        return summary

    async def run_daily_payment_reminders(self, as_of=None) -> ReminderRunSummary:
        day = _as_day(as_of or clinic_now())
        logger.info(f"💰 Running payment reminder job for {day}")

        invoices = self.due_invoices(day)
        logger.info(f"💰 Found {len(invoices)} overdue invoices")

        summary = await self._dispatch_all(
            ReminderRunSummary(PAYMENT_CATEGORY, day), invoices, self.notify_invoice
        )
        logger.info(f"✅ Payment reminders done: {summary.as_dict()}")
        return summary

    # ------------------------------------------------------------------
    # Ad hoc single-record path
    # ------------------------------------------------------------------

    async def send_appointment_reminder(self, appointment_id: int) -> DeliveryReport:
        appointment = self.appointments.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment", appointment_id)
        return await self.notify_appointment(appointment)

    async def send_payment_reminder(self, invoice_id: int) -> DeliveryReport:
        invoice = self.invoices.get_invoice(self.db, invoice_id)
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return await self.notify_invoice(invoice)

    async def register_appointment_reminder(self, appointment: Appointment) -> ReminderTask:
        """Record a reminder for the appointment's day and send it right away"""
        task = self._register(APPOINTMENT_CATEGORY, appointment.id, appointment.scheduled_at.date())
        return await self._fire(task, self.notify_appointment, appointment)

    async def register_payment_reminder(self, invoice: Invoice) -> ReminderTask:
        """Record a reminder for the invoice due date and send it right away"""
        remind_on = invoice.due_date.date() if invoice.due_date else clinic_now().date()
        task = self._register(PAYMENT_CATEGORY, invoice.id, remind_on)
        return await self._fire(task, self.notify_invoice, invoice)

    def _register(self, category: str, target_id: int, remind_on: date) -> ReminderTask:
        task = ReminderTask(category=category, target_id=target_id, remind_on=remind_on)
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        logger.info(f"🗓️ Registered {category} reminder #{task.id} for target {target_id} on {remind_on}")
        return task

    async def _fire(self, task: ReminderTask, notify, item) -> ReminderTask:
        error: Optional[str] = None
        try:
            report = await notify(item)
            if report.failed:
                error = "; ".join(e for e in (report.email_error, report.sms_error) if e)
        except Exception as e:
            error = str(e)
            logger.error(f"❌ Error sending {task.category} reminder for target {task.target_id}: {e}")

        task.fired_at = clinic_now()
        task.last_error = error
        self.db.commit()
        self.db.refresh(task)
        return task
