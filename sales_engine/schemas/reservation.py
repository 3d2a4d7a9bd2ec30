from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from sales_engine.models.enums import PropertyType, ReservationStatus


class ReservationCreate(BaseModel):
    property_id: int
    property_type: PropertyType
    title: Optional[str] = None
    name: str
    email_address: Optional[str] = None
    phone_number: Optional[str] = None
    client_id: Optional[str] = None
    description: Optional[str] = None


class ReservationStatusUpdate(BaseModel):
    # Kept as a plain string so an unknown value is reported as InvalidStatus
    status: str
    remark: Optional[str] = None


class ReservationValidation(BaseModel):
    reservation_code: str


class ReservationOut(BaseModel):
    id: int
    property_id: int
    property_type: PropertyType
    title: Optional[str] = None
    name: str
    email_address: Optional[str] = None
    phone_number: Optional[str] = None
    client_id: Optional[str] = None
    code: str
    property_location: Optional[str] = None
    description: Optional[str] = None
    status: ReservationStatus
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
