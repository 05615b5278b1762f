"""
API endpoint for running the reminder scans on demand
"""

from datetime import date
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_caller
from ..clock import clinic_now
from ..database import get_db
from ..domain.scheduling.permissions import Action, Caller, require_permission
from ..domain.scheduling.router import get_notification_gateway
from ..services.notification_service import NotificationGateway
from ..services.reminder_service import ReminderDispatcher

router = APIRouter(prefix="/reminders", tags=["Reminders"])


class ReminderCategory(str, Enum):
    APPOINTMENT = "appointment"
    PAYMENT = "payment"


class ReminderRunRequest(BaseModel):
    category: ReminderCategory
    asOf: Optional[date] = None


class ReminderRunResult(BaseModel):
    category: str
    as_of: date
    due: int
    notified: int
    failed: int
    item_ids: list[int]


@router.post("/run", response_model=ReminderRunResult)
async def run_reminders(
    data: ReminderRunRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_notification_gateway),
):
    """
    Manually trigger a reminder scan
    (In production these run from the worker's daily cron)
    """
    require_permission(caller, Action.RUN_REMINDERS)
    dispatcher = ReminderDispatcher(db, gateway)
    as_of = data.asOf or clinic_now().date()

    if data.category == ReminderCategory.APPOINTMENT:
        summary = await dispatcher.run_daily_appointment_reminders(as_of)
    else:
        summary = await dispatcher.run_daily_payment_reminders(as_of)
    return ReminderRunResult(**summary.as_dict())
