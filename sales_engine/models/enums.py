"""Status enumerations, one closed set per entity."""

from enum import Enum


class PropertyType(str, Enum):
    HOUSE = "HOUSE"
    PLOT = "PLOT"


class PropertyStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"
    UNAVAILABLE = "UNAVAILABLE"


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    RESERVED = "RESERVED"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


class SaleStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class RegistrationFeesStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class ClientType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    CORPORATE = "CORPORATE"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    TRANSFER = "TRANSFER"
    CARD = "CARD"
    FULLPAYMENT = "FULLPAYMENT"
    INSTALLMENT = "INSTALLMENT"


class PaymentTarget(str, Enum):
    GENERAL = "GENERAL"
    PROPERTY = "PROPERTY"
    FACILITY = "FACILITY"
    WATER = "WATER"
    ELECTRICITY = "ELECTRICITY"
    SUPERVISION = "SUPERVISION"
    AUTHORITY = "AUTHORITY"
    OTHER = "OTHER"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    AGENCY = "AGENCY"


class OfferStatus(str, Enum):
    OFFERED = "OFFERED"
    CANCELED = "CANCELED"


class AllocationStatus(str, Enum):
    ALLOCATED = "ALLOCATED"
    CANCELED = "CANCELED"


class SaleOfferStatus(str, Enum):
    """Sale-side mirror of the offer letter."""
    PENDING = "PENDING"
    OFFERED = "OFFERED"
    CANCELED = "CANCELED"


class SaleAllocationStatus(str, Enum):
    """Sale-side mirror of the allocation letter."""
    PENDING = "PENDING"
    ALLOCATED = "ALLOCATED"
    CANCELED = "CANCELED"


class LetterDecision(str, Enum):
    APPROVED = "APPROVED"
    CANCELED = "CANCELED"


class PaymentFrequency(str, Enum):
    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"
    CUSTOM = "CUSTOM"


class PaymentPlanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ActionType(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
