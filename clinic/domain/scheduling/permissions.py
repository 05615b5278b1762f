"""Role-to-action permission table for the appointment workflow"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ...shared.errors import AuthorizationError


class Role(str, Enum):
    PATIENT = "patient"
    RECEPTIONIST = "receptionist"
    DOCTOR = "doctor"
    BRANCH_MANAGER = "branch_manager"
    SYSTEM_ADMINISTRATOR = "system_administrator"
    BILLING_STAFF = "billing_staff"


class Action(str, Enum):
    CREATE = "create"
    APPROVE = "approve"
    REJECT = "reject"
    RESCHEDULE = "reschedule"
    CANCEL = "cancel"
    SET_STATUS = "set_status"
    VIEW = "view"
    ISSUE_INVOICE = "issue_invoice"
    RUN_REMINDERS = "run_reminders"


# Staff whose bookings skip the approval queue
BOOKING_STAFF = frozenset({Role.RECEPTIONIST, Role.BRANCH_MANAGER, Role.SYSTEM_ADMINISTRATOR})

PERMISSIONS: dict[Action, frozenset] = {
    Action.CREATE: frozenset({Role.PATIENT}) | BOOKING_STAFF,
    Action.APPROVE: BOOKING_STAFF,
    Action.REJECT: BOOKING_STAFF,
    Action.RESCHEDULE: frozenset({Role.PATIENT}) | BOOKING_STAFF,
    Action.CANCEL: frozenset({Role.PATIENT}) | BOOKING_STAFF,
    Action.SET_STATUS: frozenset({Role.DOCTOR}) | BOOKING_STAFF,
    Action.VIEW: frozenset({Role.PATIENT, Role.DOCTOR, Role.BILLING_STAFF}) | BOOKING_STAFF,
    Action.ISSUE_INVOICE: frozenset({Role.BILLING_STAFF, Role.RECEPTIONIST, Role.SYSTEM_ADMINISTRATOR}),
    Action.RUN_REMINDERS: frozenset({Role.SYSTEM_ADMINISTRATOR}),
}

# Actions a patient may only take on their own bookings
OWN_BOOKING_ONLY = frozenset({Action.CREATE, Action.RESCHEDULE, Action.CANCEL, Action.VIEW})


@dataclass(frozen=True)
class Caller:
    """Identity and role of whoever is making the request"""

    user_id: int
    role: Role
    patient_id: Optional[int] = None

    @property
    def is_staff(self) -> bool:
        return self.role != Role.PATIENT


def can(caller: Caller, action: Action) -> bool:
    return caller.role in PERMISSIONS.get(action, frozenset())


def require_permission(caller: Caller, action: Action, patient_id: Optional[int] = None) -> None:
    """
    Raise AuthorizationError unless caller may perform action.

    When patient_id is given, a patient caller must also own that booking.
    """
    if not can(caller, action):
        raise AuthorizationError(
            f"Access denied: role '{caller.role.value}' may not {action.value.replace('_', ' ')}"
        )

    if caller.role == Role.PATIENT and action in OWN_BOOKING_ONLY and patient_id is not None:
        if caller.patient_id != patient_id:
            raise AuthorizationError("Access denied: patients may only manage their own bookings")
