from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sales_engine.api.deps import get_db
from sales_engine.api.responses import respond
from sales_engine.core.audit import history_for
from sales_engine.core.auth import get_current_user, User
from sales_engine.core.errors import ValidationError
from sales_engine.core.permissions import Operation, ensure_can_perform
from sales_engine.schemas.common import ApiResponse

router = APIRouter(prefix="/history", tags=["history"])

ENTITY_TYPES = ("property", "reservation", "sale", "offer", "allocation", "payment_plan")


@router.get("/{entity_type}/{entity_id}", response_model=ApiResponse)
def list_history(
    entity_type: str,
    entity_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update history of any entity, including ones since deleted."""
    ensure_can_perform(current_user, Operation.HISTORY_READ)
    if entity_type not in ENTITY_TYPES:
        raise ValidationError("InvalidEntityType")
    entries = history_for(db, entity_type, entity_id)
    return respond("History", [entry.as_dict() for entry in entries])
