from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class NotificationCategory(str, Enum):
    GENERAL = "GENERAL"
    RESERVATION = "RESERVATION"
    SALE_APPLIED = "SALE_APPLIED"
    SALE_APPROVED = "SALE_APPROVED"
    SALE_DECLINED = "SALE_DECLINED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    OFFER = "OFFER"
    ALLOCATION = "ALLOCATION"
    PAYMENT_PLAN_CREATED = "PAYMENT_PLAN_CREATED"
    PAYMENT_PLAN_CANCELLED = "PAYMENT_PLAN_CANCELLED"


class Channel(str, Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"
    IN_APP = "IN_APP"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Recipient(BaseModel):
    name: Optional[str] = None
    email_address: Optional[str] = None
    phone_number: Optional[str] = None


class NotificationDto(BaseModel):
    to: Recipient
    subject: str
    body: Optional[str] = None
    category: NotificationCategory = NotificationCategory.GENERAL
    channels: List[Channel] = Field(default_factory=lambda: [Channel.EMAIL, Channel.SMS])
    priority: NotificationPriority = NotificationPriority.MEDIUM
    context: Optional[Any] = None
