from datetime import datetime, timezone
from typing import List, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import func
from sqlalchemy.orm import Session

from sales_engine.core.auth import User
from sales_engine.models.enums import ActionType
from sales_engine.models.update_history import HistoryEntry


def _next_sequence(db: Session, entity_type: str, entity_id: int) -> int:
    current = (
        db.query(func.max(HistoryEntry.sequence))
        .filter(HistoryEntry.entity_type == entity_type, HistoryEntry.entity_id == entity_id)
        .scalar()
    )
    return (current or 0) + 1


def append_history(
    db: Session,
    *,
    actor: Optional[User],
    entity_type: str,
    entity_id: int,
    action_type: ActionType,
    changes: dict,
) -> HistoryEntry:
    """
    Append one history entry for an entity. Runs inside the caller's
    transaction: nothing is committed here.
    """
    entry = HistoryEntry(
        entity_type=entity_type,
        entity_id=entity_id,
        sequence=_next_sequence(db, entity_type, entity_id),
        action_type=action_type,
        changes=jsonable_encoder(changes),
        action_by=actor.id if actor else None,
        action_by_user=actor.name if actor else None,
        action_date=datetime.now(timezone.utc),
    )
    db.add(entry)
    db.flush()
    return entry


def history_for(db: Session, entity_type: str, entity_id: int) -> List[HistoryEntry]:
    return (
        db.query(HistoryEntry)
        .filter(HistoryEntry.entity_type == entity_type, HistoryEntry.entity_id == entity_id)
        .order_by(HistoryEntry.sequence)
        .all()
    )
