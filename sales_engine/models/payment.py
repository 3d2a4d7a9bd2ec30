from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from sales_engine.core.database import Base
from sales_engine.models.enums import PaymentTarget


class Payment(Base):
    __tablename__ = "sale_payments"

    id = Column(Integer, primary_key=True, index=True)

    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    sale = relationship("Sale")

    # Set when the payment was recorded as a payment-plan cycle
    payment_plan_id = Column(Integer, ForeignKey("payment_plans.id", ondelete="SET NULL"), nullable=True, index=True)

    amount = Column(Numeric(14, 2), nullable=False)
    target_type = Column(Enum(PaymentTarget, native_enum=False, length=20), nullable=False, default=PaymentTarget.GENERAL)
    payment_method = Column(String, nullable=True)
    reference = Column(String, nullable=True)
    narration = Column(String, nullable=True)

    created_by_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
