from sales_engine.models.property import Property
from sales_engine.models.reservation import Reservation
from sales_engine.models.sale import Sale, FEE_FIELDS
from sales_engine.models.payment import Payment
from sales_engine.models.offer import Offer
from sales_engine.models.allocation import Allocation
from sales_engine.models.payment_plan import PaymentPlan
from sales_engine.models.update_history import HistoryEntry

__all__ = [
    "Property",
    "Reservation",
    "Sale",
    "FEE_FIELDS",
    "Payment",
    "Offer",
    "Allocation",
    "PaymentPlan",
    "HistoryEntry",
]
