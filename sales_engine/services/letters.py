"""
Offer and allocation letters.

Both letters follow the same lifecycle, so a single LetterService carries the
logic and the two subclasses only name their tables, statuses and codes. A
letter is 1:1 with an approved sale, and the sale keeps a mirror of the
letter's status and id that is always written in the same transaction.
"""
import logging
from typing import List, Optional

from sales_engine.core.audit import history_for
from sales_engine.core.auth import User
from sales_engine.core.errors import InternalError, NotFoundError, StateConflictError, ValidationError
from sales_engine.core.permissions import Operation, ensure_can_perform
from sales_engine.models.allocation import Allocation
from sales_engine.models.enums import (
    ActionType,
    AllocationStatus,
    LetterDecision,
    OfferStatus,
    SaleAllocationStatus,
    SaleOfferStatus,
    SaleStatus,
)
from sales_engine.models.offer import Offer
from sales_engine.models.sale import Sale
from sales_engine.models.update_history import HistoryEntry
from sales_engine.schemas.letter import LetterIssue
from sales_engine.schemas.notification import (
    NotificationCategory,
    NotificationDto,
    NotificationPriority,
    Recipient,
)
from sales_engine.services.base import BaseService, generate_number

logger = logging.getLogger(__name__)

NUMBER_ATTEMPTS = 10


class LetterService(BaseService):
    integrity_conflict_code = "LetterAlreadyIssued"

    model = None
    entity_type = ""
    number_field = ""
    prefix = ""
    issued_status = None
    canceled_status = None

    mirror_status_field = ""
    mirror_id_field = ""
    mirror_pending = None
    mirror_issued = None
    mirror_canceled = None

    not_found_code = ""
    pending_sale_code = ""
    declined_sale_code = ""

    issue_operation = None
    change_status_operation = None
    delete_operation = None

    subject = ""
    category = NotificationCategory.GENERAL

    def _load(self, letter_id: int, for_update: bool = False):
        q = self.db.query(self.model).filter(self.model.id == letter_id)
        if for_update:
            q = q.with_for_update()
        letter = q.first()
        if not letter:
            raise NotFoundError(self.not_found_code)
        return letter

    def _load_sale(self, sale_id: int) -> Sale:
        sale = self.db.query(Sale).filter(Sale.id == sale_id).with_for_update().first()
        if not sale:
            raise NotFoundError("SaleNotAvailable")
        return sale

    def _unique_number(self) -> str:
        column = getattr(self.model, self.number_field)
        for _ in range(NUMBER_ATTEMPTS):
            number = generate_number(self.prefix)
            if self.db.query(self.model.id).filter(column == number).first() is None:
                return number
        raise InternalError(f"Could not generate a unique {self.entity_type} number")

    def issue(self, payload: LetterIssue, actor: User):
        """
        Issue the letter for a sale, or replace the file of the one already
        issued. Only the first issuance notifies the client.
        """
        with self.transaction():
            ensure_can_perform(actor, self.issue_operation)
            sale = self._load_sale(payload.sale_id)
            if sale.status == SaleStatus.PENDING:
                raise StateConflictError(self.pending_sale_code)
            if sale.status == SaleStatus.DECLINED:
                raise StateConflictError(self.declined_sale_code)

            letter = self.db.query(self.model).filter(self.model.sale_id == sale.id).first()
            if letter is not None:
                letter.file_url = payload.file_url
                if payload.remark is not None:
                    letter.remark = payload.remark
                self.record(actor, self.entity_type, letter.id, ActionType.UPDATE, payload.model_dump())
                logger.info("%s %s re-issued for sale %s", self.entity_type, letter.id, sale.id)
                return letter

            letter = self.model(
                sale_id=sale.id,
                house_id=sale.house_id,
                plot_id=sale.plot_id,
                file_url=payload.file_url,
                remark=payload.remark,
                status=self.issued_status,
                created_by_id=actor.id,
                **{self.number_field: self._unique_number()},
            )
            self.db.add(letter)
            self.db.flush()

            setattr(sale, self.mirror_status_field, self.mirror_issued)
            setattr(sale, self.mirror_id_field, letter.id)

            self.record(
                actor,
                self.entity_type,
                letter.id,
                ActionType.CREATE,
                {**payload.model_dump(), "status": self.issued_status, self.number_field: getattr(letter, self.number_field)},
            )
            self.record(
                actor,
                "sale",
                sale.id,
                ActionType.UPDATE,
                {self.mirror_status_field: self.mirror_issued, self.mirror_id_field: letter.id},
            )
            self.notify(
                NotificationDto(
                    to=Recipient(name=sale.name, email_address=sale.email_address, phone_number=sale.phone_number),
                    subject=self.subject,
                    body=f"Dear {sale.name},\n\nYour {self.entity_type} letter is ready: {payload.file_url}",
                    category=self.category,
                    priority=NotificationPriority.HIGH,
                    context={"sale_id": sale.id, f"{self.entity_type}_id": letter.id},
                )
            )
            logger.info("%s %s issued for sale %s", self.entity_type, letter.id, sale.id)
        return letter

    def change_status(self, letter_id: int, status: str, actor: User, remark: Optional[str] = None):
        with self.transaction():
            ensure_can_perform(actor, self.change_status_operation)
            letter = self._load(letter_id, for_update=True)
            sale = self._load_sale(letter.sale_id)

            if status == LetterDecision.APPROVED.value:
                letter_status, mirror = self.issued_status, self.mirror_issued
            elif status == LetterDecision.CANCELED.value:
                letter_status, mirror = self.canceled_status, self.mirror_canceled
            else:
                raise ValidationError("InvalidStatus")

            letter.status = letter_status
            if remark is not None:
                letter.remark = remark
            setattr(sale, self.mirror_status_field, mirror)

            self.record(actor, self.entity_type, letter.id, ActionType.UPDATE, {"status": letter_status, "remark": remark})
            self.record(actor, "sale", sale.id, ActionType.UPDATE, {self.mirror_status_field: mirror})
            logger.info("%s %s -> %s", self.entity_type, letter.id, letter_status.value)
        return letter

    def delete(self, letter_id: int, actor: User) -> None:
        with self.transaction():
            ensure_can_perform(actor, self.delete_operation)
            letter = self._load(letter_id, for_update=True)
            sale = self._load_sale(letter.sale_id)

            setattr(sale, self.mirror_status_field, self.mirror_pending)
            setattr(sale, self.mirror_id_field, None)

            self.record(actor, self.entity_type, letter.id, ActionType.DELETE, {"status": letter.status})
            self.record(
                actor,
                "sale",
                sale.id,
                ActionType.UPDATE,
                {self.mirror_status_field: self.mirror_pending, self.mirror_id_field: None},
            )
            self.db.delete(letter)
            logger.info("%s %s deleted, sale %s reset", self.entity_type, letter_id, sale.id)

    def get(self, letter_id: int):
        return self._load(letter_id)

    def history(self, letter_id: int) -> List[HistoryEntry]:
        return history_for(self.db, self.entity_type, letter_id)


class OfferService(LetterService):
    model = Offer
    entity_type = "offer"
    number_field = "offer_number"
    prefix = "OF"
    issued_status = OfferStatus.OFFERED
    canceled_status = OfferStatus.CANCELED

    mirror_status_field = "offer_status"
    mirror_id_field = "offer_id"
    mirror_pending = SaleOfferStatus.PENDING
    mirror_issued = SaleOfferStatus.OFFERED
    mirror_canceled = SaleOfferStatus.CANCELED

    not_found_code = "OfferNotAvailable"
    pending_sale_code = "UnableToOfferPendingSale"
    declined_sale_code = "UnableToOfferDeclinedSale"

    issue_operation = Operation.OFFER_ISSUE
    change_status_operation = Operation.OFFER_CHANGE_STATUS
    delete_operation = Operation.OFFER_DELETE

    subject = "Offer of House"
    category = NotificationCategory.OFFER


class AllocationService(LetterService):
    model = Allocation
    entity_type = "allocation"
    number_field = "allocation_number"
    prefix = "AL"
    issued_status = AllocationStatus.ALLOCATED
    canceled_status = AllocationStatus.CANCELED

    mirror_status_field = "allocation_status"
    mirror_id_field = "allocation_id"
    mirror_pending = SaleAllocationStatus.PENDING
    mirror_issued = SaleAllocationStatus.ALLOCATED
    mirror_canceled = SaleAllocationStatus.CANCELED

    not_found_code = "AllocationNotAvailable"
    pending_sale_code = "UnableToAllocatePendingSale"
    declined_sale_code = "UnableToAllocateDeclinedSale"

    issue_operation = Operation.ALLOCATION_ISSUE
    change_status_operation = Operation.ALLOCATION_CHANGE_STATUS
    delete_operation = Operation.ALLOCATION_DELETE

    subject = "Allocation of House"
    category = NotificationCategory.ALLOCATION
