from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sales_engine.core.database import Base
from sales_engine.models.enums import PaymentFrequency, PaymentPlanStatus


class PaymentPlan(Base):
    __tablename__ = "payment_plans"

    id = Column(Integer, primary_key=True, index=True)

    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    sale = relationship("Sale")
    client_id = Column(String, nullable=True, index=True)

    plan_name = Column(String, nullable=True)
    frequency = Column(Enum(PaymentFrequency, native_enum=False, length=20), nullable=False)
    custom_date = Column(DateTime(timezone=True), nullable=True)  # only for CUSTOM

    amount_per_cycle = Column(Numeric(14, 2), nullable=False)
    total_cycles = Column(Integer, nullable=False)
    cycles_completed = Column(Integer, nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False)

    start_date = Column(DateTime(timezone=True), nullable=False)
    next_payment_date = Column(DateTime(timezone=True), nullable=True)  # None once completed

    status = Column(
        Enum(PaymentPlanStatus, native_enum=False, length=20),
        nullable=False,
        default=PaymentPlanStatus.ACTIVE,
        index=True,
    )
    remark = Column(String, nullable=True)

    created_by_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now(), nullable=False)

    @property
    def cycles_remaining(self) -> int:
        return self.total_cycles - self.cycles_completed
