from decimal import Decimal

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Numeric, Enum, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sales_engine.core.database import Base
from sales_engine.models.enums import (
    ClientType,
    PaymentStatus,
    PropertyType,
    RegistrationFeesStatus,
    SaleAllocationStatus,
    SaleOfferStatus,
    SaleStatus,
)

# The named fees that make up a sale's payable total, besides the price itself.
# Each one has a "<name>_paid" counterpart column.
FEE_FIELDS = (
    "facility_fee",
    "water_fee",
    "electricity_fee",
    "supervision_fee",
    "authority_fee",
    "other_fee",
    "infrastructure_cost",
    "agency_fee",
)


def _money(nullable=False):
    return Column(Numeric(14, 2), nullable=nullable, default=Decimal("0"))


class Sale(Base):
    __tablename__ = "sales"
    __table_args__ = (
        # A property carries at most one non-declined sale
        Index(
            "uq_sales_active_property",
            "property_id",
            "property_type",
            unique=True,
            postgresql_where=text("status <> 'DECLINED'"),
            sqlite_where=text("status <> 'DECLINED'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    property_type = Column(Enum(PropertyType, native_enum=False, length=10), nullable=False)
    unit = relationship("Property")

    reservation_id = Column(Integer, ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True, index=True)
    reservation = relationship("Reservation")

    code = Column(String(6), nullable=False, index=True)
    transaction_ref = Column(String, nullable=False)

    # Client / company snapshot
    title = Column(String, nullable=True)
    name = Column(String, nullable=False)
    email_address = Column(String, nullable=True, index=True)
    phone_number = Column(String, nullable=True, index=True)
    client_id = Column(String, nullable=True, index=True)
    client_type = Column(Enum(ClientType, native_enum=False, length=20), nullable=False, default=ClientType.INDIVIDUAL)
    company_name = Column(String, nullable=True)
    residential_address = Column(String, nullable=True)

    agent_id = Column(String, nullable=True)
    agent_name = Column(String, nullable=True)

    # Financials
    property_price = _money()
    property_price_paid = _money()
    facility_fee = _money()
    facility_fee_paid = _money()
    water_fee = _money()
    water_fee_paid = _money()
    electricity_fee = _money()
    electricity_fee_paid = _money()
    supervision_fee = _money()
    supervision_fee_paid = _money()
    authority_fee = _money()
    authority_fee_paid = _money()
    other_fee = _money()
    other_fee_paid = _money()
    infrastructure_cost = _money()
    infrastructure_cost_paid = _money()
    agency_fee = _money()
    agency_fee_paid = _money()
    discount = _money()
    paid_amount = _money()
    total_payable_amount = _money()

    registration_fees = _money()
    registration_fees_status = Column(
        Enum(RegistrationFeesStatus, native_enum=False, length=10),
        nullable=False,
        default=RegistrationFeesStatus.UNPAID,
    )

    payment_method = Column(String, nullable=True)
    additional_information = Column(String, nullable=True)

    status = Column(Enum(SaleStatus, native_enum=False, length=20), nullable=False, default=SaleStatus.PENDING, index=True)
    payment_status = Column(
        Enum(PaymentStatus, native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.UNPAID,
    )

    # Mirrors of the child letters
    offer_status = Column(Enum(SaleOfferStatus, native_enum=False, length=20), nullable=False, default=SaleOfferStatus.PENDING)
    offer_id = Column(Integer, nullable=True)
    allocation_status = Column(
        Enum(SaleAllocationStatus, native_enum=False, length=20),
        nullable=False,
        default=SaleAllocationStatus.PENDING,
    )
    allocation_id = Column(Integer, nullable=True)
    payment_plan_id = Column(Integer, nullable=True)

    created_by_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now(), nullable=False)

    @property
    def house_id(self):
        return self.property_id if self.property_type == PropertyType.HOUSE else None

    @property
    def plot_id(self):
        return self.property_id if self.property_type == PropertyType.PLOT else None

    @property
    def balance(self) -> Decimal:
        return Decimal(self.total_payable_amount or 0) - Decimal(self.paid_amount or 0)
