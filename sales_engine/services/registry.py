import logging
from typing import List, Optional

from sqlalchemy import update

from sales_engine.core.auth import User
from sales_engine.core.errors import NotFoundError, StateConflictError
from sales_engine.core.permissions import Operation, ensure_can_perform
from sales_engine.models.enums import ActionType, PropertyStatus, PropertyType
from sales_engine.models.property import Property
from sales_engine.services.base import BaseService

logger = logging.getLogger(__name__)


class PropertyRegistry(BaseService):
    """
    Read and conditional write of unit availability.

    Status only ever changes through set_status, a compare-and-set on the
    current status: a write based on a stale read updates nothing and fails.
    """

    def get_by_id(
        self,
        property_id: int,
        property_type: Optional[PropertyType] = None,
        for_update: bool = False,
    ) -> Property:
        q = self.db.query(Property).filter(Property.id == property_id)
        if property_type is not None:
            q = q.filter(Property.property_type == property_type)
        if for_update:
            q = q.with_for_update()
        prop = q.first()
        if not prop:
            raise NotFoundError("PropertyNotFound")
        return prop

    def set_status(
        self,
        prop: Property,
        status: PropertyStatus,
        expected: PropertyStatus,
        **holds,
    ) -> Property:
        """
        Move ``prop`` from ``expected`` to ``status``, writing any hold
        references (reservation_id, sale_id, reserved_by_id, client_id) with it.
        """
        self.db.flush()
        result = self.db.execute(
            update(Property)
            .where(Property.id == prop.id, Property.status == expected)
            .values(status=status, version=Property.version + 1, **holds)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "Property %s status conflict: expected %s, wanted %s",
                prop.id,
                expected.value,
                status.value,
            )
            raise StateConflictError("PropertyStatusConflict")
        self.db.refresh(prop)
        logger.info("Property %s: %s -> %s", prop.id, expected.value, status.value)
        return prop

    def list(
        self,
        property_type: Optional[PropertyType] = None,
        status: Optional[PropertyStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Property]:
        q = self.db.query(Property)
        if property_type is not None:
            q = q.filter(Property.property_type == property_type)
        if status is not None:
            q = q.filter(Property.status == status)
        return q.order_by(Property.id).offset(offset).limit(limit).all()

    def create(self, data: dict, actor: User) -> Property:
        with self.transaction():
            ensure_can_perform(actor, Operation.PROPERTY_CREATE)
            prop = Property(**data, status=PropertyStatus.AVAILABLE, version=1)
            self.db.add(prop)
            self.db.flush()
            self.record(actor, "property", prop.id, ActionType.CREATE, data)
        return prop
