"""Billing domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ...models_invoice import Invoice


class InvoiceCreate(BaseModel):
    patientId: int
    totalAmount: Decimal = Field(gt=0)
    dueDate: Optional[datetime] = None
    appointmentId: Optional[int] = None
    description: Optional[str] = None


class PaymentCreate(BaseModel):
    amount: Decimal = Field(gt=0)


class InvoiceResponse(BaseModel):
    id: int
    invoiceNumber: str
    patientId: int
    appointmentId: Optional[int]
    totalAmount: float
    paidAmount: float
    outstandingAmount: float
    status: str
    dueDate: Optional[datetime]
    paidAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, invoice: Invoice) -> "InvoiceResponse":
        return cls(
            id=invoice.id,
            invoiceNumber=invoice.invoice_number,
            patientId=invoice.patient_id,
            appointmentId=invoice.appointment_id,
            totalAmount=float(invoice.total_amount),
            paidAmount=float(invoice.paid_amount or 0),
            outstandingAmount=float(invoice.outstanding_amount),
            status=invoice.status,
            dueDate=invoice.due_date,
            paidAt=invoice.paid_at,
        )
