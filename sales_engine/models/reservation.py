from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Enum, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sales_engine.core.database import Base
from sales_engine.models.enums import PropertyType, ReservationStatus


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        # One live (non-declined) reservation per property, enforced by the store
        Index(
            "uq_reservations_active_property",
            "property_id",
            "property_type",
            unique=True,
            postgresql_where=text("status <> 'DECLINED'"),
            sqlite_where=text("status <> 'DECLINED'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    property_type = Column(Enum(PropertyType, native_enum=False, length=10), nullable=False)
    unit = relationship("Property")

    # Client snapshot at reservation time
    title = Column(String, nullable=True)
    name = Column(String, nullable=False)
    email_address = Column(String, nullable=True, index=True)
    phone_number = Column(String, nullable=True, index=True)
    client_id = Column(String, nullable=True, index=True)

    code = Column(String(6), nullable=False, index=True)  # what the client quotes back
    property_location = Column(String, nullable=True)
    description = Column(String, nullable=True)

    status = Column(
        Enum(ReservationStatus, native_enum=False, length=20),
        nullable=False,
        default=ReservationStatus.PENDING,
    )

    created_by_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now(), nullable=False)

    def belongs_to(self, client_id=None, email_address=None, phone_number=None) -> bool:
        """Same client: matching client id, else matching email or phone."""
        if client_id and self.client_id:
            return client_id == self.client_id
        if email_address and self.email_address and email_address.lower() == self.email_address.lower():
            return True
        return bool(phone_number and self.phone_number and phone_number == self.phone_number)
