"""
Role allow-lists for every engine operation.

The allow-lists are data: POLICY maps an Operation to the set of roles that
may perform it, and can_perform is the only place that reads it.
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional

from sales_engine.core import errors
from sales_engine.core.auth import User


class Role(str, Enum):
    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CUSTOMERCARE = "CUSTOMERCARE"
    ACCOUNTANT = "ACCOUNTANT"
    AGENT = "AGENT"
    CLIENT = "CLIENT"


class Operation(str, Enum):
    PROPERTY_CREATE = "property.create"
    RESERVATION_CONFIRM = "reservation.confirm"  # staff reservations skip review
    RESERVATION_CHANGE_STATUS = "reservation.change_status"
    RESERVATION_CANCEL = "reservation.cancel"
    SALE_CREATE = "sale.create"
    SALE_APPROVE = "sale.approve"
    SALE_UPDATE = "sale.update"
    SALE_DECLINE = "sale.decline"
    SALE_DELETE = "sale.delete"
    SALE_RECORD_PAYMENT = "sale.record_payment"
    OFFER_ISSUE = "offer.issue"
    OFFER_CHANGE_STATUS = "offer.change_status"
    OFFER_DELETE = "offer.delete"
    ALLOCATION_ISSUE = "allocation.issue"
    ALLOCATION_CHANGE_STATUS = "allocation.change_status"
    ALLOCATION_DELETE = "allocation.delete"
    PAYMENT_PLAN_CREATE = "payment_plan.create"
    PAYMENT_PLAN_UPDATE = "payment_plan.update"
    PAYMENT_PLAN_RECORD_CYCLE = "payment_plan.record_cycle"
    PAYMENT_PLAN_CANCEL = "payment_plan.cancel"
    HISTORY_READ = "history.read"


APPROVER_ROLES: FrozenSet[Role] = frozenset({Role.SUPERADMIN, Role.ADMIN, Role.MANAGER})
MASTER_ROLES: FrozenSet[Role] = APPROVER_ROLES | {Role.CUSTOMERCARE}
MANAGEMENT_ROLES: FrozenSet[Role] = MASTER_ROLES | {Role.ACCOUNTANT}

POLICY: Dict[Operation, FrozenSet[Role]] = {
    Operation.PROPERTY_CREATE: APPROVER_ROLES,
    Operation.RESERVATION_CONFIRM: MASTER_ROLES,
    Operation.RESERVATION_CHANGE_STATUS: APPROVER_ROLES,
    Operation.RESERVATION_CANCEL: MASTER_ROLES,
    Operation.SALE_CREATE: MANAGEMENT_ROLES,
    Operation.SALE_APPROVE: APPROVER_ROLES,
    Operation.SALE_UPDATE: MANAGEMENT_ROLES,
    Operation.SALE_DECLINE: APPROVER_ROLES,
    Operation.SALE_DELETE: MASTER_ROLES,
    Operation.SALE_RECORD_PAYMENT: MANAGEMENT_ROLES,
    Operation.OFFER_ISSUE: APPROVER_ROLES,
    Operation.OFFER_CHANGE_STATUS: APPROVER_ROLES,
    Operation.OFFER_DELETE: APPROVER_ROLES,
    Operation.ALLOCATION_ISSUE: APPROVER_ROLES,
    Operation.ALLOCATION_CHANGE_STATUS: APPROVER_ROLES,
    Operation.ALLOCATION_DELETE: APPROVER_ROLES,
    Operation.PAYMENT_PLAN_CREATE: MANAGEMENT_ROLES,
    Operation.PAYMENT_PLAN_UPDATE: MANAGEMENT_ROLES,
    Operation.PAYMENT_PLAN_RECORD_CYCLE: MANAGEMENT_ROLES,
    Operation.PAYMENT_PLAN_CANCEL: MANAGEMENT_ROLES,
    Operation.HISTORY_READ: MANAGEMENT_ROLES,
}


def can_perform(actor: Optional[User], operation: Operation) -> bool:
    if actor is None:
        return False
    allowed = POLICY.get(operation, frozenset())
    return actor.role in {role.value for role in allowed}


def ensure_can_perform(actor: Optional[User], operation: Operation) -> User:
    if actor is None:
        raise errors.NotAuthenticatedError("NotAuthenticated")
    if not can_perform(actor, operation):
        raise errors.PermissionDeniedError("NoPermission")
    return actor
