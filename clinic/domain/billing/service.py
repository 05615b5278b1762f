"""Invoice service - issuing invoices and tracking what is still owed"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...clock import clinic_now, to_clinic_time
from ...config import INVOICE_DEFAULT_DUE_DAYS
from ...models import Patient
from ...models_invoice import Invoice, InvoiceStatus
from ...services.notification_service import NotificationGateway
from ...services.reminder_service import ReminderDispatcher
from ...shared.errors import NotFoundError, ValidationError
from ..scheduling.permissions import Action, Caller, require_permission
from ..scheduling.repository import AppointmentRepository
from .repository import InvoiceRepository

logger = logging.getLogger(__name__)

INVOICE_NUMBER_ATTEMPTS = 3


class InvoiceService:
    def __init__(
        self,
        db: Session,
        gateway: NotificationGateway,
        now: Callable[[], datetime] = clinic_now,
    ):
        self.db = db
        self.repo = InvoiceRepository()
        self.appointments = AppointmentRepository()
        self.reminders = ReminderDispatcher(db, gateway)
        self.now = now

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.repo.get_invoice(self.db, invoice_id)
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def find_due_invoices(self, caller: Caller, as_of) -> list[Invoice]:
        require_permission(caller, Action.ISSUE_INVOICE)
        return self.repo.find_due_invoices(self.db, as_of)

    async def issue_invoice(
        self,
        caller: Caller,
        patient_id: int,
        total_amount: Decimal,
        due_date: Optional[datetime] = None,
        appointment_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Invoice:
        """Create an invoice and send the patient a payment reminder right away"""
        require_permission(caller, Action.ISSUE_INVOICE)

        if total_amount is None or Decimal(total_amount) <= 0:
            raise ValidationError("Invoice amount must be positive", code="invalid_amount")
        if not self.db.query(Patient).filter(Patient.id == patient_id).first():
            raise NotFoundError("Patient", patient_id)
        if appointment_id is not None:
            appointment = self.appointments.get_appointment(self.db, appointment_id)
            if not appointment:
                raise NotFoundError("Appointment", appointment_id)
            if appointment.patient_id != patient_id:
                raise ValidationError(
                    "Appointment belongs to a different patient", code="appointment_patient_mismatch"
                )

        now = self.now()
        due = to_clinic_time(due_date) if due_date else now + timedelta(days=INVOICE_DEFAULT_DUE_DAYS)
        fields = {
            "patient_id": patient_id,
            "appointment_id": appointment_id,
            "description": description,
            "total_amount": Decimal(total_amount),
            "paid_amount": Decimal("0"),
            "status": InvoiceStatus.UNPAID.value,
            "due_date": due,
        }

        # Concurrent issues on one day can pick the same number; the unique index decides
        for attempt in range(1, INVOICE_NUMBER_ATTEMPTS + 1):
            number = self.repo.next_invoice_number(self.db, now.date())
            try:
                invoice = self.repo.create_invoice(self.db, invoice_number=number, **fields)
                break
            except IntegrityError:
                self.db.rollback()
                if attempt == INVOICE_NUMBER_ATTEMPTS:
                    raise
                logger.warning(f"⚠️ Invoice number {number} already taken, retrying ({attempt})")
        logger.info(f"🧾 Invoice {invoice.invoice_number} issued for patient {patient_id}: {invoice.total_amount}")

        try:
            await self.reminders.register_payment_reminder(invoice)
        except Exception as e:
            logger.error(f"❌ Payment reminder for invoice {invoice.id} failed: {e}")
        return invoice

    def record_payment(self, caller: Caller, invoice_id: int, amount: Decimal) -> Invoice:
        """Apply a received amount; settles the invoice when nothing is left owing"""
        require_permission(caller, Action.ISSUE_INVOICE)
        invoice = self.get_invoice(invoice_id)

        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be positive", code="invalid_amount")
        if invoice.status not in (InvoiceStatus.UNPAID.value, InvoiceStatus.PARTIALLY_PAID.value):
            raise ValidationError(f"Invoice is already {invoice.status}", code="invoice_closed")

        paid = Decimal(invoice.paid_amount or 0) + amount
        if paid > Decimal(invoice.total_amount):
            raise ValidationError("Payment exceeds the outstanding balance", code="overpayment")

        updates = {"paid_amount": paid}
        if paid == Decimal(invoice.total_amount):
            updates.update(status=InvoiceStatus.PAID.value, paid_at=self.now())
        else:
            updates["status"] = InvoiceStatus.PARTIALLY_PAID.value

        invoice = self.repo.update_invoice(self.db, invoice, **updates)
        logger.info(f"💵 Payment of {amount} recorded on invoice {invoice.invoice_number} → {invoice.status}")
        return invoice
