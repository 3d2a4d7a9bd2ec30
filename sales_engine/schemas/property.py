from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from sales_engine.models.enums import PropertyStatus, PropertyType


class PropertyCreate(BaseModel):
    property_type: PropertyType
    block_number: str
    unit_number: str  # house number or plot number
    estate_name: Optional[str] = None
    price: Decimal

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("price must be greater than zero")
        return v


class PropertyOut(BaseModel):
    id: int
    property_type: PropertyType
    block_number: str
    unit_number: str
    estate_name: Optional[str] = None
    price: Decimal
    status: PropertyStatus
    reservation_id: Optional[int] = None
    sale_id: Optional[int] = None
    reserved_by_id: Optional[str] = None
    client_id: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
