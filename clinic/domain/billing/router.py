"""Invoice router - issuing invoices and listing overdue balances"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_caller
from ...clock import clinic_now
from ...database import get_db
from ...services.notification_service import NotificationGateway
from ..scheduling.permissions import Caller
from ..scheduling.router import get_notification_gateway
from .schemas import InvoiceCreate, InvoiceResponse, PaymentCreate
from .service import InvoiceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_service(
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_notification_gateway),
) -> InvoiceService:
    """Dependency injection for InvoiceService"""
    return InvoiceService(db, gateway)


@router.post("", response_model=InvoiceResponse, status_code=201)
async def issue_invoice(
    data: InvoiceCreate,
    caller: Caller = Depends(get_current_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Issue an invoice; the patient is reminded immediately"""
    invoice = await service.issue_invoice(
        caller,
        patient_id=data.patientId,
        total_amount=data.totalAmount,
        due_date=data.dueDate,
        appointment_id=data.appointmentId,
        description=data.description,
    )
    return InvoiceResponse.from_model(invoice)


@router.get("/due", response_model=list[InvoiceResponse])
async def list_due_invoices(
    as_of: Optional[date] = Query(None),
    caller: Caller = Depends(get_current_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Overdue invoices the payment reminder run would pick up"""
    invoices = service.find_due_invoices(caller, as_of or clinic_now().date())
    return [InvoiceResponse.from_model(i) for i in invoices]


@router.post("/{invoice_id}/payments", response_model=InvoiceResponse)
async def record_payment(
    invoice_id: int,
    data: PaymentCreate,
    caller: Caller = Depends(get_current_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    return InvoiceResponse.from_model(service.record_payment(caller, invoice_id, data.amount))
