"""Invoice repository - Database operations for invoices"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models_invoice import OPEN_INVOICE_STATUSES, Invoice


class InvoiceRepository:
    """Repository for invoice database operations"""

    @staticmethod
    def get_invoice(db: Session, invoice_id: int) -> Optional[Invoice]:
        return (
            db.query(Invoice)
            .options(joinedload(Invoice.patient))
            .filter(Invoice.id == invoice_id)
            .first()
        )

    @staticmethod
    def find_due_invoices(db: Session, as_of) -> list[Invoice]:
        """Open invoices with a positive balance whose due date is before as_of's day"""
        day = as_of.date() if isinstance(as_of, datetime) else as_of
        start_of_day = datetime.combine(day, datetime.min.time())
        return (
            db.query(Invoice)
            .options(joinedload(Invoice.patient))
            .filter(
                Invoice.due_date.isnot(None),
                Invoice.due_date < start_of_day,
                Invoice.status.in_([s.value for s in OPEN_INVOICE_STATUSES]),
                Invoice.total_amount - func.coalesce(Invoice.paid_amount, 0) > 0,
            )
            .order_by(Invoice.due_date.asc(), Invoice.id.asc())
            .all()
        )

    @staticmethod
    def next_invoice_number(db: Session, issued_on: date) -> str:
        """INV-YYYYMMDD-NNNN, one past the highest number issued that day"""
        prefix = f"INV-{issued_on:%Y%m%d}-"
        latest = (
            db.query(Invoice.invoice_number)
            .filter(Invoice.invoice_number.like(f"{prefix}%"))
            .order_by(Invoice.invoice_number.desc())
            .first()
        )
        sequence = int(latest[0][len(prefix):]) + 1 if latest else 1
        return f"{prefix}{sequence:04d}"

    @staticmethod
    def create_invoice(db: Session, **fields) -> Invoice:
        invoice = Invoice(**fields)
        db.add(invoice)
        db.commit()
        db.refresh(invoice)
        return invoice

    @staticmethod
    def update_invoice(db: Session, invoice: Invoice, **updates) -> Invoice:
        for key, value in updates.items():
            if hasattr(invoice, key):
                setattr(invoice, key, value)
        db.commit()
        db.refresh(invoice)
        return invoice
