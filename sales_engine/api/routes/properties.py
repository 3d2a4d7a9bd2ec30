from typing import Optional

from fastapi import APIRouter, Depends, Query

from sales_engine.api.deps import get_registry
from sales_engine.api.responses import detail, respond
from sales_engine.core.audit import history_for
from sales_engine.core.auth import get_current_user, User
from sales_engine.models.enums import PropertyStatus, PropertyType
from sales_engine.schemas.common import ApiResponse
from sales_engine.schemas.property import PropertyCreate, PropertyOut
from sales_engine.services.registry import PropertyRegistry

router = APIRouter(prefix="/properties", tags=["properties"])


@router.get("", response_model=ApiResponse)
def list_properties(
    registry: PropertyRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
    property_type: Optional[PropertyType] = Query(None),
    status: Optional[PropertyStatus] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    items = registry.list(property_type=property_type, status=status, limit=limit, offset=offset)
    return respond("Properties", items, PropertyOut)


@router.get("/{property_id}", response_model=ApiResponse)
def get_property(
    property_id: int,
    registry: PropertyRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    prop = registry.get_by_id(property_id)
    return respond("Property", detail(PropertyOut, prop, history_for(registry.db, "property", prop.id)))


@router.post("", response_model=ApiResponse, status_code=201)
def create_property(
    payload: PropertyCreate,
    registry: PropertyRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user),
):
    prop = registry.create(payload.model_dump(), current_user)
    return respond("Property created", prop, PropertyOut)
