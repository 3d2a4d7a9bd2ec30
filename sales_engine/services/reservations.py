import logging
from typing import List, Optional

from sales_engine.core.audit import history_for
from sales_engine.core.auth import User
from sales_engine.core.errors import NotFoundError, StateConflictError, ValidationError
from sales_engine.core.permissions import Operation, can_perform, ensure_can_perform
from sales_engine.models.enums import ActionType, PropertyStatus, ReservationStatus, SaleStatus
from sales_engine.models.reservation import Reservation
from sales_engine.models.sale import Sale
from sales_engine.models.update_history import HistoryEntry
from sales_engine.schemas.notification import (
    NotificationCategory,
    NotificationDto,
    NotificationPriority,
    Recipient,
)
from sales_engine.schemas.reservation import ReservationCreate
from sales_engine.services.base import BaseService, generate_code
from sales_engine.services.registry import PropertyRegistry

logger = logging.getLogger(__name__)


def _recipient(reservation: Reservation) -> Recipient:
    return Recipient(
        name=reservation.name,
        email_address=reservation.email_address,
        phone_number=reservation.phone_number,
    )


class ReservationService(BaseService):
    integrity_conflict_code = "PropertyAlreadyReserved"

    def __init__(self, db, dispatcher=None, outbox=None):
        super().__init__(db, dispatcher, outbox)
        self.registry = PropertyRegistry(db, dispatcher, self._outbox)

    def _get(self, reservation_id: int, for_update: bool = False) -> Reservation:
        q = self.db.query(Reservation).filter(Reservation.id == reservation_id)
        if for_update:
            q = q.with_for_update()
        reservation = q.first()
        if not reservation:
            raise NotFoundError("ReservationNotFound")
        return reservation

    def _active_reservation(self, property_id, property_type) -> Optional[Reservation]:
        return (
            self.db.query(Reservation)
            .filter(
                Reservation.property_id == property_id,
                Reservation.property_type == property_type,
                Reservation.status != ReservationStatus.DECLINED,
            )
            .first()
        )

    def _has_live_sale(self, reservation: Reservation, statuses) -> bool:
        return (
            self.db.query(Sale.id)
            .filter(Sale.reservation_id == reservation.id, Sale.status.in_(statuses))
            .first()
            is not None
        )

    def reserve(self, payload: ReservationCreate, actor: Optional[User] = None) -> Reservation:
        """
        Hold an AVAILABLE property for a client.

        Staff reservations are confirmed straight away (RESERVED); public
        requests wait for review (PENDING). Either way the property is held.
        """
        with self.transaction():
            prop = self.registry.get_by_id(payload.property_id, payload.property_type, for_update=True)

            existing = self._active_reservation(prop.id, prop.property_type)
            if existing is not None:
                if existing.belongs_to(payload.client_id, payload.email_address, payload.phone_number):
                    raise StateConflictError("DuplicateReservation")
                raise StateConflictError("PropertyAlreadyReserved")
            if prop.status != PropertyStatus.AVAILABLE:
                raise StateConflictError("PropertyNotAvailable")

            confirmed = can_perform(actor, Operation.RESERVATION_CONFIRM)
            data = payload.model_dump()
            reservation = Reservation(
                **data,
                code=generate_code(),
                property_location=prop.location,
                status=ReservationStatus.RESERVED if confirmed else ReservationStatus.PENDING,
                created_by_id=actor.id if actor else None,
            )
            self.db.add(reservation)
            self.db.flush()

            self.registry.set_status(
                prop,
                PropertyStatus.RESERVED,
                expected=PropertyStatus.AVAILABLE,
                reservation_id=reservation.id,
                reserved_by_id=payload.client_id or (actor.id if actor else None),
            )
            self.record(
                actor,
                "reservation",
                reservation.id,
                ActionType.CREATE,
                {**data, "status": reservation.status, "code": reservation.code},
            )
            self.record(
                actor,
                "property",
                prop.id,
                ActionType.UPDATE,
                {"status": PropertyStatus.RESERVED, "reservation_id": reservation.id},
            )

            if confirmed:
                subject = "Reservation Confirmed – Thank You for Choosing Us!"
                body = (
                    f"Dear {reservation.name},\n\n"
                    f"The {prop.label} with ID #{prop.id} has been successfully reserved for you, "
                    f"your reservation code is #{reservation.code}.\n\n"
                    "Our team will reach out to you shortly to guide you through the next steps."
                )
            else:
                subject = "Reservation Request Received – We're Reviewing It"
                body = (
                    f"Dear {reservation.name},\n\n"
                    f"We have received your reservation request for the {prop.label} with ID #{prop.id}.\n\n"
                    "Our team is reviewing your request and will get in touch with you shortly."
                )
            self.notify(
                NotificationDto(
                    to=_recipient(reservation),
                    subject=subject,
                    body=body,
                    category=NotificationCategory.RESERVATION,
                    priority=NotificationPriority.HIGH,
                    context={"reservation_id": reservation.id, "property_id": prop.id},
                )
            )
            logger.info("Reservation %s created on property %s", reservation.id, prop.id)
        return reservation

    def change_status(
        self,
        reservation_id: int,
        status: str,
        actor: Optional[User],
        remark: Optional[str] = None,
    ) -> Reservation:
        with self.transaction():
            ensure_can_perform(actor, Operation.RESERVATION_CHANGE_STATUS)
            reservation = self._get(reservation_id, for_update=True)

            if status not in (ReservationStatus.APPROVED.value, ReservationStatus.DECLINED.value):
                raise ValidationError("InvalidStatus")
            target = ReservationStatus(status)
            if reservation.status == ReservationStatus.DECLINED or reservation.status == target:
                raise StateConflictError("ReservationStatusConflict")

            prop = self.registry.get_by_id(reservation.property_id, reservation.property_type, for_update=True)
            if target == ReservationStatus.DECLINED:
                if self._has_live_sale(reservation, (SaleStatus.PENDING, SaleStatus.APPROVED)):
                    raise StateConflictError("ReservationHasActiveSale")
                # DECLINED is terminal: the property goes back on the market
                if prop.status == PropertyStatus.RESERVED and prop.reservation_id == reservation.id:
                    self.registry.set_status(
                        prop,
                        PropertyStatus.AVAILABLE,
                        expected=PropertyStatus.RESERVED,
                        reservation_id=None,
                        sale_id=None,
                        reserved_by_id=None,
                    )
                    self.record(actor, "property", prop.id, ActionType.UPDATE, {"status": PropertyStatus.AVAILABLE})

            reservation.status = target
            self.record(
                actor,
                "reservation",
                reservation.id,
                ActionType.UPDATE,
                {"status": target, "remark": remark},
            )

            label = f"block {prop.block_number}, {prop.property_type.value.lower()} number {prop.unit_number}"
            if target == ReservationStatus.APPROVED:
                subject = "Reservation Confirmed – Thank You for Choosing Us!"
                body = (
                    f"Dear {reservation.name},\n\n"
                    f"The {label} with ID #{prop.id} has been successfully reserved for you, "
                    f"and your reservation code is #{reservation.code}."
                )
            else:
                subject = f"Reservation Request Declined – {label}"
                body = (
                    f"Dear {reservation.name},\n\n"
                    f"We regret to inform you that your reservation request for the {label} "
                    f"with ID #{prop.id} has been declined."
                )
            self.notify(
                NotificationDto(
                    to=_recipient(reservation),
                    subject=subject,
                    body=body,
                    category=NotificationCategory.RESERVATION,
                    priority=NotificationPriority.HIGH,
                    context={"reservation_id": reservation.id, "status": target.value},
                )
            )
        logger.info("Reservation %s -> %s", reservation_id, target.value)
        return reservation

    def cancel(self, reservation_id: int, actor: Optional[User]) -> None:
        """Release the property and delete the reservation. Its history is kept."""
        with self.transaction():
            reservation = self._get(reservation_id, for_update=True)
            own = actor is not None and reservation.belongs_to(client_id=actor.id, email_address=actor.email)
            if not own:
                ensure_can_perform(actor, Operation.RESERVATION_CANCEL)

            prop = self.registry.get_by_id(reservation.property_id, reservation.property_type, for_update=True)
            if prop.status != PropertyStatus.RESERVED or prop.reservation_id != reservation.id:
                raise StateConflictError("PropertyNotInReservedState")
            if self._has_live_sale(reservation, (SaleStatus.PENDING,)):
                raise StateConflictError("ReservationHasActiveSale")

            self.registry.set_status(
                prop,
                PropertyStatus.AVAILABLE,
                expected=PropertyStatus.RESERVED,
                reservation_id=None,
                sale_id=None,
                reserved_by_id=None,
                client_id=None,
            )
            self.record(actor, "property", prop.id, ActionType.UPDATE, {"status": PropertyStatus.AVAILABLE})
            self.record(actor, "reservation", reservation.id, ActionType.DELETE, {"status": reservation.status})
            self.db.delete(reservation)
            logger.info("Reservation %s cancelled, property %s released", reservation_id, prop.id)

    def validate(self, property_id: int, code: str) -> Reservation:
        reservation = (
            self.db.query(Reservation)
            .filter(Reservation.property_id == property_id, Reservation.code == code)
            .first()
        )
        if not reservation:
            raise ValidationError("InvalidReservationCode")
        return reservation

    def get(self, reservation_id: int) -> Reservation:
        return self._get(reservation_id)

    def history(self, reservation_id: int) -> List[HistoryEntry]:
        return history_for(self.db, "reservation", reservation_id)
