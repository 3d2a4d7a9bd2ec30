from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal

from sales_engine.models.enums import PaymentFrequency, PaymentPlanStatus


class PaymentPlanCreate(BaseModel):
    sale_id: int
    client_id: Optional[str] = None
    plan_name: Optional[str] = None
    frequency: PaymentFrequency
    custom_date: Optional[datetime] = None  # first due date for CUSTOM plans
    amount_per_cycle: Decimal
    total_cycles: int
    total_amount: Optional[Decimal] = None  # defaults to amount_per_cycle * total_cycles
    start_date: datetime
    remark: Optional[str] = None


class PaymentCycleCreate(BaseModel):
    custom_date: Optional[datetime] = None  # next due date for CUSTOM plans
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    narration: Optional[str] = None


class PaymentPlanUpdate(BaseModel):
    plan_name: Optional[str] = None
    frequency: Optional[PaymentFrequency] = None
    custom_date: Optional[datetime] = None
    amount_per_cycle: Optional[Decimal] = None
    total_cycles: Optional[int] = None
    total_amount: Optional[Decimal] = None
    remark: Optional[str] = None


class PaymentPlanCancel(BaseModel):
    remark: Optional[str] = None


class PaymentPlanOut(BaseModel):
    id: int
    sale_id: int
    client_id: Optional[str] = None
    plan_name: Optional[str] = None
    frequency: PaymentFrequency
    custom_date: Optional[datetime] = None
    amount_per_cycle: Decimal
    total_cycles: int
    cycles_completed: int
    total_amount: Decimal
    start_date: datetime
    next_payment_date: Optional[datetime] = None
    status: PaymentPlanStatus
    remark: Optional[str] = None
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
