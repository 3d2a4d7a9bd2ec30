from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from sales_engine.models.enums import AllocationStatus, OfferStatus


class LetterIssue(BaseModel):
    sale_id: int
    file_url: str
    remark: Optional[str] = None


class LetterStatusUpdate(BaseModel):
    # APPROVED or CANCELED; anything else is InvalidStatus
    status: str
    remark: Optional[str] = None


class OfferOut(BaseModel):
    id: int
    sale_id: int
    house_id: Optional[int] = None
    plot_id: Optional[int] = None
    offer_number: str
    file_url: str
    remark: Optional[str] = None
    status: OfferStatus
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AllocationOut(BaseModel):
    id: int
    sale_id: int
    house_id: Optional[int] = None
    plot_id: Optional[int] = None
    allocation_number: str
    file_url: str
    remark: Optional[str] = None
    status: AllocationStatus
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
