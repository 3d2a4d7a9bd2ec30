from sqlalchemy import Column, String, Integer, DateTime, Enum, JSON, UniqueConstraint
from sqlalchemy.sql import func
from sales_engine.core.database import Base
from sales_engine.models.enums import ActionType


class HistoryEntry(Base):
    """
    One append-only history record. Rows are never updated or deleted, so an
    entity's history outlives the entity (e.g. a cancelled reservation).
    """

    __tablename__ = "update_history"
    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "sequence", name="uq_update_history_entity_sequence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String(30), nullable=False, index=True)  # property/reservation/sale/offer/...
    entity_id = Column(Integer, nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    action_type = Column(Enum(ActionType, native_enum=False, length=10), nullable=False)
    changes = Column(JSON, nullable=False, default=dict)

    action_by = Column(String, nullable=True)  # actor id; None for public requests
    action_by_user = Column(String, nullable=True)  # actor display name
    action_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def as_dict(self) -> dict:
        return {
            **(self.changes or {}),
            "actionType": self.action_type.value,
            "actionDate": self.action_date,
            "actionBy": self.action_by,
            "actionByUser": self.action_by_user,
        }
