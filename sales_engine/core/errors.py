"""Exception hierarchy for the transaction engine.

Every business-rule failure is raised as an ``EngineError`` carrying a stable
``code`` and an HTTP-style ``status_code``. The API layer turns them into
``{success: false, message, payload: {code}}`` results.
"""

from typing import Optional

MESSAGES = {
    # not found
    "PropertyNotFound": "Property not found",
    "ReservationNotFound": "Reservation not found",
    "SaleNotAvailable": "Sale not available",
    "OfferNotAvailable": "Offer not available",
    "AllocationNotAvailable": "Allocation not available",
    "PaymentPlanNotFound": "Payment plan not found",
    # permission
    "NoPermission": "You do not have permission to perform this action",
    "NotAuthenticated": "Authentication is required for this action",
    # state conflicts
    "DuplicateReservation": "Property already reserved by this client",
    "PropertyAlreadyReserved": "Property has already been reserved",
    "PropertyNotAvailable": "Property is not available for reservation",
    "PropertyNotInReservedState": "Property is not in a reserved state",
    "PropertyStatusConflict": "Property status changed by another request, please retry",
    "ReservationStatusConflict": "Reservation cannot move to the requested status",
    "ReservationHasActiveSale": "Reservation has a pending sale and cannot be cancelled",
    "ReservationNotApproved": "Reservation has not been approved",
    "ReservationPropertyMismatch": "Reservation does not belong to this property",
    "PropertyReservedByAnotherClient": "Property is reserved by another client",
    "PropertyNotAvailableForSale": "Property is not available for sale",
    "PropertyAlreadySold": "Property already has an active sale",
    "SaleNotInPendingState": "Sale is not in a pending state",
    "SaleNotApproved": "Sale has not been approved",
    "SaleDeclined": "Sale has been declined",
    "SaleBalanceIsZero": "Sale has no outstanding balance",
    "ApprovedSaleCannotBeDeleted": "An approved sale cannot be deleted",
    "UnableToOfferPendingSale": "Unable to issue an offer on a pending sale",
    "UnableToOfferDeclinedSale": "Unable to issue an offer on a declined sale",
    "UnableToAllocatePendingSale": "Unable to allocate a pending sale",
    "UnableToAllocateDeclinedSale": "Unable to allocate a declined sale",
    "LetterAlreadyIssued": "A letter was issued for this sale by another request, please retry",
    "PaymentPlanAlreadyActive": "Sale already has an active payment plan",
    "PaymentPlanNotActive": "Payment plan is not active",
    "PaymentPlanAlreadyStarted": "Payment plan amounts cannot change after a cycle has been recorded",
    # validation
    "InvalidStatus": "Invalid status",
    "InvalidReservationCode": "Invalid reservation code",
    "InvalidAmount": "Amount must be greater than zero",
    "PaidAmountExceedsTotal": "Paid amount cannot exceed the total payable amount",
    "PaymentExceedsBalance": "Payment exceeds the outstanding balance",
    "PlanAmountMismatch": "Total amount does not match amount per cycle times total cycles",
    "PaymentPlanExceedsBalance": "Payment plan total exceeds the sale's outstanding balance",
    "CustomDateRequired": "A custom date is required for CUSTOM frequency",
    "InvalidEntityType": "Unknown entity type",
    # internal
    "NotificationDispatchFailed": "Notification could not be delivered",
    "Exception": "Something went wrong, please try again later",
}


class EngineError(Exception):
    """Base exception for all engine failures."""

    status_code = 400

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or MESSAGES.get(code, code)
        super().__init__(self.message)


class NotFoundError(EngineError):
    """A referenced property, reservation, sale, letter or plan does not exist."""

    status_code = 404


class PermissionDeniedError(EngineError):
    """The actor's role is not in the operation's allow-list."""

    status_code = 403


class NotAuthenticatedError(PermissionDeniedError):
    status_code = 401


class StateConflictError(EngineError):
    """The entity is in a status incompatible with the operation."""


class ValidationError(EngineError):
    """Malformed input such as an unknown status value or a bad amount."""


class ExternalDispatchFailure(EngineError):
    """A notification could not be delivered. Logged, never returned to clients."""

    status_code = 502


class InternalError(EngineError):
    """An unexpected failure, reported with a generic message."""

    status_code = 500

    def __init__(self, message: Optional[str] = None):
        super().__init__("Exception", message)
