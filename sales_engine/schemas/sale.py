from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from sales_engine.models.enums import (
    ClientType,
    PaymentStatus,
    PaymentTarget,
    PropertyType,
    RegistrationFeesStatus,
    SaleAllocationStatus,
    SaleOfferStatus,
    SaleStatus,
)
from sales_engine.models.sale import FEE_FIELDS


def _not_negative(v):
    if v is not None and v < 0:
        raise ValueError("amount must not be negative")
    return v


class SaleFees(BaseModel):
    facility_fee: Decimal = Decimal("0")
    water_fee: Decimal = Decimal("0")
    electricity_fee: Decimal = Decimal("0")
    supervision_fee: Decimal = Decimal("0")
    authority_fee: Decimal = Decimal("0")
    other_fee: Decimal = Decimal("0")
    infrastructure_cost: Decimal = Decimal("0")
    agency_fee: Decimal = Decimal("0")  # absolute amount, not a percentage
    discount: Decimal = Decimal("0")

    @field_validator(*FEE_FIELDS, "discount")
    @classmethod
    def amounts_must_not_be_negative(cls, v):
        return _not_negative(v)


class SaleCreate(SaleFees):
    property_id: int
    property_type: PropertyType
    # Quoted by a client converting an existing reservation
    reservation_code: Optional[str] = None

    title: Optional[str] = None
    name: str
    email_address: Optional[str] = None
    phone_number: Optional[str] = None
    client_id: Optional[str] = None
    client_type: ClientType = ClientType.INDIVIDUAL
    company_name: Optional[str] = None
    residential_address: Optional[str] = None

    agent_id: Optional[str] = None
    agent_name: Optional[str] = None

    registration_fees: Decimal = Decimal("0")
    payment_method: Optional[str] = None
    additional_information: Optional[str] = None

    @field_validator("registration_fees")
    @classmethod
    def registration_fees_must_not_be_negative(cls, v):
        return _not_negative(v)


class SaleApproval(BaseModel):
    """Approval may override any fee or the discount before the total is fixed."""
    facility_fee: Optional[Decimal] = None
    water_fee: Optional[Decimal] = None
    electricity_fee: Optional[Decimal] = None
    supervision_fee: Optional[Decimal] = None
    authority_fee: Optional[Decimal] = None
    other_fee: Optional[Decimal] = None
    infrastructure_cost: Optional[Decimal] = None
    agency_fee: Optional[Decimal] = None
    discount: Optional[Decimal] = None

    paid_amount: Decimal = Decimal("0")
    payment_method: Optional[str] = None
    remark: Optional[str] = None

    @field_validator(*FEE_FIELDS, "discount", "paid_amount")
    @classmethod
    def amounts_must_not_be_negative(cls, v):
        return _not_negative(v)


class SaleUpdate(BaseModel):
    """Edits to a pending sale. Omitted fields keep their current value."""
    facility_fee: Optional[Decimal] = None
    water_fee: Optional[Decimal] = None
    electricity_fee: Optional[Decimal] = None
    supervision_fee: Optional[Decimal] = None
    authority_fee: Optional[Decimal] = None
    other_fee: Optional[Decimal] = None
    infrastructure_cost: Optional[Decimal] = None
    agency_fee: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    registration_fees: Optional[Decimal] = None

    title: Optional[str] = None
    name: Optional[str] = None
    email_address: Optional[str] = None
    phone_number: Optional[str] = None
    client_type: Optional[ClientType] = None
    company_name: Optional[str] = None
    residential_address: Optional[str] = None
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    payment_method: Optional[str] = None
    additional_information: Optional[str] = None

    @field_validator(*FEE_FIELDS, "discount", "registration_fees")
    @classmethod
    def amounts_must_not_be_negative(cls, v):
        return _not_negative(v)


class SaleDecline(BaseModel):
    remark: Optional[str] = None


class SalePaymentCreate(BaseModel):
    amount: Decimal
    target_type: PaymentTarget = PaymentTarget.GENERAL
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    narration: Optional[str] = None


class PaymentOut(BaseModel):
    id: int
    sale_id: int
    payment_plan_id: Optional[int] = None
    amount: Decimal
    target_type: PaymentTarget
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    narration: Optional[str] = None
    created_by_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SaleOut(SaleFees):
    id: int
    property_id: int
    property_type: PropertyType
    house_id: Optional[int] = None
    plot_id: Optional[int] = None
    reservation_id: Optional[int] = None
    code: str
    transaction_ref: str

    title: Optional[str] = None
    name: str
    email_address: Optional[str] = None
    phone_number: Optional[str] = None
    client_id: Optional[str] = None
    client_type: ClientType
    company_name: Optional[str] = None
    residential_address: Optional[str] = None
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None

    property_price: Decimal
    property_price_paid: Decimal
    facility_fee_paid: Decimal
    water_fee_paid: Decimal
    electricity_fee_paid: Decimal
    supervision_fee_paid: Decimal
    authority_fee_paid: Decimal
    other_fee_paid: Decimal
    infrastructure_cost_paid: Decimal
    agency_fee_paid: Decimal
    paid_amount: Decimal
    total_payable_amount: Decimal
    balance: Decimal
    registration_fees: Decimal
    registration_fees_status: RegistrationFeesStatus
    payment_method: Optional[str] = None
    additional_information: Optional[str] = None

    status: SaleStatus
    payment_status: PaymentStatus
    offer_status: SaleOfferStatus
    offer_id: Optional[int] = None
    allocation_status: SaleAllocationStatus
    allocation_id: Optional[int] = None
    payment_plan_id: Optional[int] = None

    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
