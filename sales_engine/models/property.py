from sqlalchemy import Column, String, Integer, DateTime, Numeric, Enum
from sqlalchemy.sql import func
from sales_engine.core.database import Base
from sales_engine.models.enums import PropertyStatus, PropertyType


class Property(Base):
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)

    # HOUSE or PLOT
    property_type = Column(Enum(PropertyType, native_enum=False, length=10), nullable=False, index=True)

    block_number = Column(String, nullable=False)
    unit_number = Column(String, nullable=False)  # house number or plot number
    estate_name = Column(String, nullable=True)

    price = Column(Numeric(14, 2), nullable=False)

    status = Column(
        Enum(PropertyStatus, native_enum=False, length=20),
        nullable=False,
        default=PropertyStatus.AVAILABLE,
        index=True,
    )

    # Current hold. Plain ids: reservations/sales point back here with real FKs.
    reservation_id = Column(Integer, nullable=True)
    sale_id = Column(Integer, nullable=True)
    reserved_by_id = Column(String, nullable=True)
    client_id = Column(String, nullable=True)

    # Bumped by every status compare-and-set in the registry
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def label(self) -> str:
        """Human-readable name, e.g. 'house 12 block B'."""
        return f"{self.property_type.value.lower()} {self.unit_number} block {self.block_number}"

    @property
    def location(self) -> str:
        return self.estate_name or "Standalone"
