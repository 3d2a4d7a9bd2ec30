from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sales_engine.core.database import Base
from sales_engine.models.enums import AllocationStatus


class Allocation(Base):
    __tablename__ = "sale_allocations"

    id = Column(Integer, primary_key=True, index=True)

    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, unique=True)
    sale = relationship("Sale")

    house_id = Column(Integer, nullable=True)
    plot_id = Column(Integer, nullable=True)

    allocation_number = Column(String(8), nullable=False, unique=True)  # "AL" + 6 digits
    file_url = Column(String, nullable=False)
    remark = Column(String, nullable=True)

    status = Column(
        Enum(AllocationStatus, native_enum=False, length=20),
        nullable=False,
        default=AllocationStatus.ALLOCATED,
    )

    created_by_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now(), nullable=False)
