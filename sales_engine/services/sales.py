import logging
from decimal import Decimal
from typing import List, Optional

from sales_engine.core.audit import history_for
from sales_engine.core.auth import User
from sales_engine.core.errors import NotFoundError, StateConflictError, ValidationError
from sales_engine.core.permissions import Operation, ensure_can_perform
from sales_engine.models.enums import (
    ActionType,
    PaymentMethod,
    PaymentStatus,
    PaymentTarget,
    PropertyStatus,
    RegistrationFeesStatus,
    ReservationStatus,
    SaleStatus,
)
from sales_engine.models.payment import Payment
from sales_engine.models.payment_plan import PaymentPlan
from sales_engine.models.property import Property
from sales_engine.models.reservation import Reservation
from sales_engine.models.sale import FEE_FIELDS, Sale
from sales_engine.models.update_history import HistoryEntry
from sales_engine.schemas.notification import (
    NotificationCategory,
    NotificationDto,
    NotificationPriority,
    Recipient,
)
from sales_engine.schemas.sale import SaleApproval, SaleCreate, SalePaymentCreate, SaleUpdate
from sales_engine.services.base import BaseService, generate_code, to_money, transaction_ref
from sales_engine.services.registry import PropertyRegistry

logger = logging.getLogger(__name__)

# Which "*_paid" column a targeted payment is credited to
TARGET_BUCKETS = {
    PaymentTarget.PROPERTY: "property_price_paid",
    PaymentTarget.FACILITY: "facility_fee_paid",
    PaymentTarget.WATER: "water_fee_paid",
    PaymentTarget.ELECTRICITY: "electricity_fee_paid",
    PaymentTarget.SUPERVISION: "supervision_fee_paid",
    PaymentTarget.AUTHORITY: "authority_fee_paid",
    PaymentTarget.OTHER: "other_fee_paid",
    PaymentTarget.INFRASTRUCTURE: "infrastructure_cost_paid",
    PaymentTarget.AGENCY: "agency_fee_paid",
}


def compute_total(price, fees: dict, discount) -> Decimal:
    """property_price + every named fee - discount."""
    total = to_money(price) + sum((to_money(fees.get(name)) for name in FEE_FIELDS), Decimal("0"))
    return total - to_money(discount)


def payment_status_for(paid: Decimal, total: Decimal) -> PaymentStatus:
    if paid <= 0:
        return PaymentStatus.UNPAID
    if paid >= total:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def _recipient(sale: Sale) -> Recipient:
    return Recipient(name=sale.name, email_address=sale.email_address, phone_number=sale.phone_number)


class SaleService(BaseService):
    """
    Sale workflow: PENDING -> APPROVED or DECLINED.

    A pending sale holds its property as RESERVED; approval flips it to SOLD
    and decline releases it. Payments are only taken once APPROVED.
    """

    integrity_conflict_code = "PropertyAlreadySold"

    def __init__(self, db, dispatcher=None, outbox=None):
        super().__init__(db, dispatcher, outbox)
        self.registry = PropertyRegistry(db, dispatcher, self._outbox)

    def load(self, sale_id: int, for_update: bool = False) -> Sale:
        q = self.db.query(Sale).filter(Sale.id == sale_id)
        if for_update:
            q = q.with_for_update()
        sale = q.first()
        if not sale:
            raise NotFoundError("SaleNotAvailable")
        return sale

    def create(self, payload: SaleCreate, actor: User) -> Sale:
        """Back-office sale creation."""
        with self.transaction():
            ensure_can_perform(actor, Operation.SALE_CREATE)
            sale = self._open_sale(payload, actor)
        return sale

    def apply(self, payload: SaleCreate, actor: Optional[User] = None) -> Sale:
        """Public purchase application; same rules as create, no role needed."""
        with self.transaction():
            sale = self._open_sale(payload, actor)
        return sale

    def _resolve_reservation(self, payload: SaleCreate) -> Reservation:
        reservations = (
            self.db.query(Reservation)
            .filter(
                Reservation.code == payload.reservation_code,
                Reservation.status != ReservationStatus.DECLINED,
            )
            .order_by(Reservation.id)
            .all()
        )
        if not reservations:
            raise ValidationError("InvalidReservationCode")
        # Codes are only unique per property
        reservation = next(
            (
                r
                for r in reservations
                if r.property_id == payload.property_id and r.property_type == payload.property_type
            ),
            None,
        )
        if reservation is None:
            raise StateConflictError("ReservationPropertyMismatch")
        if reservation.status not in (ReservationStatus.APPROVED, ReservationStatus.RESERVED):
            raise StateConflictError("ReservationNotApproved")
        if not reservation.belongs_to(email_address=payload.email_address, phone_number=payload.phone_number):
            raise StateConflictError("PropertyReservedByAnotherClient")
        return reservation

    def _open_sale(self, payload: SaleCreate, actor: Optional[User]) -> Sale:
        prop = self.registry.get_by_id(payload.property_id, payload.property_type, for_update=True)
        reservation = self._resolve_reservation(payload) if payload.reservation_code else None

        active = (
            self.db.query(Sale.id)
            .filter(
                Sale.property_id == prop.id,
                Sale.property_type == prop.property_type,
                Sale.status != SaleStatus.DECLINED,
            )
            .first()
        )
        if active is not None:
            raise StateConflictError("PropertyAlreadySold")
        if reservation is None and prop.status != PropertyStatus.AVAILABLE:
            raise StateConflictError("PropertyNotAvailableForSale")

        data = payload.model_dump(exclude={"reservation_code"})
        fees = {name: to_money(data.pop(name)) for name in FEE_FIELDS}
        discount = to_money(data.pop("discount"))
        total = compute_total(prop.price, fees, discount)
        if total < 0:
            raise ValidationError("InvalidAmount")

        sale = Sale(
            **data,
            **fees,
            discount=discount,
            reservation_id=reservation.id if reservation else None,
            code=generate_code(),
            transaction_ref=transaction_ref(),
            property_price=to_money(prop.price),
            total_payable_amount=total,
            paid_amount=Decimal("0"),
            status=SaleStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            created_by_id=actor.id if actor else None,
        )
        self.db.add(sale)
        self.db.flush()

        if reservation is not None:
            # The reservation already holds the property; just point it at the sale
            self.registry.set_status(prop, PropertyStatus.RESERVED, expected=PropertyStatus.RESERVED, sale_id=sale.id)
        else:
            self.registry.set_status(
                prop,
                PropertyStatus.RESERVED,
                expected=PropertyStatus.AVAILABLE,
                sale_id=sale.id,
                reserved_by_id=sale.client_id,
            )

        self.record(
            actor,
            "sale",
            sale.id,
            ActionType.CREATE,
            {**payload.model_dump(), "status": sale.status, "total_payable_amount": total},
        )
        self.record(actor, "property", prop.id, ActionType.UPDATE, {"status": PropertyStatus.RESERVED, "sale_id": sale.id})
        self.notify(
            NotificationDto(
                to=_recipient(sale),
                subject="Purchase Application Submitted",
                body=(
                    f"Dear {sale.name},\n\n"
                    f"Your application to purchase the {prop.label} has been received "
                    f"(reference {sale.transaction_ref}). We will notify you once it has been reviewed."
                ),
                category=NotificationCategory.SALE_APPLIED,
                priority=NotificationPriority.HIGH,
                context={"sale_id": sale.id, "property_id": prop.id},
            )
        )
        logger.info("Sale %s opened on property %s (total %s)", sale.id, prop.id, total)
        return sale

    def approve(self, sale_id: int, approval: SaleApproval, actor: User) -> Sale:
        with self.transaction():
            ensure_can_perform(actor, Operation.SALE_APPROVE)
            sale = self.load(sale_id, for_update=True)
            if sale.status != SaleStatus.PENDING:
                raise StateConflictError("SaleNotInPendingState")

            overrides = approval.model_dump(exclude_none=True, include=set(FEE_FIELDS) | {"discount"})
            for name, value in overrides.items():
                setattr(sale, name, to_money(value))
            total = compute_total(sale.property_price, {name: getattr(sale, name) for name in FEE_FIELDS}, sale.discount)
            paid = to_money(approval.paid_amount)
            if total < 0 or paid < 0:
                raise ValidationError("InvalidAmount")
            if paid > total:
                raise ValidationError("PaidAmountExceedsTotal")

            sale.total_payable_amount = total
            sale.registration_fees_status = RegistrationFeesStatus.PAID
            sale.status = SaleStatus.APPROVED
            if approval.payment_method:
                sale.payment_method = approval.payment_method

            prop = self.registry.get_by_id(sale.property_id, sale.property_type, for_update=True)
            self.registry.set_status(
                prop,
                PropertyStatus.SOLD,
                expected=PropertyStatus.RESERVED,
                sale_id=sale.id,
                client_id=sale.client_id,
            )

            if paid > 0:
                target = PaymentTarget.GENERAL if sale.payment_method == PaymentMethod.FULLPAYMENT.value else PaymentTarget.PROPERTY
                self._credit(sale, paid, target, actor, narration="Initial payment", reference=sale.code)
            else:
                sale.payment_status = PaymentStatus.UNPAID

            self.record(
                actor,
                "sale",
                sale.id,
                ActionType.UPDATE,
                {**approval.model_dump(exclude_none=True), "status": SaleStatus.APPROVED, "total_payable_amount": total},
            )
            self.record(actor, "property", prop.id, ActionType.UPDATE, {"status": PropertyStatus.SOLD, "sale_id": sale.id})
            self.notify(
                NotificationDto(
                    to=_recipient(sale),
                    subject="Property Purchase Approved",
                    body=(
                        f"Dear {sale.name},\n\n"
                        f"Your purchase of the {prop.label} has been approved. "
                        f"Total payable: {total}, paid so far: {sale.paid_amount}."
                    ),
                    category=NotificationCategory.SALE_APPROVED,
                    priority=NotificationPriority.HIGH,
                    context={"sale_id": sale.id},
                )
            )
            logger.info("Sale %s approved, property %s sold", sale.id, prop.id)
        return sale

    def decline(self, sale_id: int, remark: Optional[str], actor: User) -> Sale:
        with self.transaction():
            ensure_can_perform(actor, Operation.SALE_DECLINE)
            sale = self.load(sale_id, for_update=True)
            if sale.status != SaleStatus.PENDING:
                raise StateConflictError("SaleNotInPendingState")
            sale.status = SaleStatus.DECLINED
            prop = self._release_property(sale, actor)

            self.record(actor, "sale", sale.id, ActionType.UPDATE, {"status": SaleStatus.DECLINED, "remark": remark})
            self.notify(
                NotificationDto(
                    to=_recipient(sale),
                    subject="Property Purchase Declined",
                    body=f"Dear {sale.name},\n\nYour purchase application for the {prop.label} has been declined.",
                    category=NotificationCategory.SALE_DECLINED,
                    context={"sale_id": sale.id, "remark": remark},
                )
            )
            logger.info("Sale %s declined", sale.id)
        return sale

    def _release_property(self, sale: Sale, actor: Optional[User]) -> Property:
        """Drop the sale's hold; a live reservation keeps the property RESERVED."""
        prop = self.registry.get_by_id(sale.property_id, sale.property_type, for_update=True)
        if prop.sale_id != sale.id:
            return prop
        reservation = sale.reservation
        if reservation is not None and reservation.status != ReservationStatus.DECLINED:
            self.registry.set_status(prop, PropertyStatus.RESERVED, expected=PropertyStatus.RESERVED, sale_id=None)
            released = PropertyStatus.RESERVED
        else:
            self.registry.set_status(
                prop,
                PropertyStatus.AVAILABLE,
                expected=PropertyStatus.RESERVED,
                sale_id=None,
                reservation_id=None,
                reserved_by_id=None,
                client_id=None,
            )
            released = PropertyStatus.AVAILABLE
        self.record(actor, "property", prop.id, ActionType.UPDATE, {"status": released, "sale_id": None})
        return prop

    def update(self, sale_id: int, changes: SaleUpdate, actor: User) -> Sale:
        """Edit a pending sale; fee or discount changes recompute the total."""
        with self.transaction():
            ensure_can_perform(actor, Operation.SALE_UPDATE)
            sale = self.load(sale_id, for_update=True)
            if sale.status != SaleStatus.PENDING:
                raise StateConflictError("SaleNotInPendingState")

            data = changes.model_dump(exclude_none=True)
            for name, value in data.items():
                if name in FEE_FIELDS or name in ("discount", "registration_fees"):
                    value = to_money(value)
                setattr(sale, name, value)
            total = compute_total(sale.property_price, {name: getattr(sale, name) for name in FEE_FIELDS}, sale.discount)
            if total < 0:
                raise ValidationError("InvalidAmount")
            sale.total_payable_amount = total

            self.record(actor, "sale", sale.id, ActionType.UPDATE, {**data, "total_payable_amount": total})
            logger.info("Sale %s updated (total %s)", sale.id, total)
        return sale

    def delete(self, sale_id: int, actor: User) -> None:
        """
        Remove a sale that never went through. Approved sales carry payments
        and letters, so only PENDING and DECLINED sales can be deleted. Any
        payment plans on the sale go with it; history rows are kept.
        """
        with self.transaction():
            ensure_can_perform(actor, Operation.SALE_DELETE)
            sale = self.load(sale_id, for_update=True)
            if sale.status == SaleStatus.APPROVED:
                raise StateConflictError("ApprovedSaleCannotBeDeleted")
            if sale.status == SaleStatus.PENDING:
                self._release_property(sale, actor)

            for plan in self.db.query(PaymentPlan).filter(PaymentPlan.sale_id == sale.id).all():
                self.record(actor, "payment_plan", plan.id, ActionType.DELETE, {"status": plan.status})
                self.db.delete(plan)
            self.record(actor, "sale", sale.id, ActionType.DELETE, {"status": sale.status})
            self.db.delete(sale)
            logger.info("Sale %s deleted", sale_id)

    def record_payment(self, sale_id: int, payment: SalePaymentCreate, actor: User) -> Sale:
        with self.transaction():
            ensure_can_perform(actor, Operation.SALE_RECORD_PAYMENT)
            sale = self.load(sale_id, for_update=True)
            self.apply_payment(
                sale,
                payment.amount,
                payment.target_type,
                actor,
                payment_method=payment.payment_method,
                reference=payment.reference,
                narration=payment.narration,
            )
        return sale

    def apply_payment(
        self,
        sale: Sale,
        amount,
        target: PaymentTarget,
        actor: Optional[User],
        payment_method: Optional[str] = None,
        reference: Optional[str] = None,
        narration: Optional[str] = None,
        payment_plan_id: Optional[int] = None,
    ) -> Payment:
        """
        Validate and credit one payment against an approved sale. Runs inside
        the caller's transaction; the payment plan scheduler reuses it.
        """
        if sale.status != SaleStatus.APPROVED:
            raise StateConflictError("SaleNotApproved")
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("InvalidAmount")
        if sale.balance <= 0:
            raise StateConflictError("SaleBalanceIsZero")
        if amount > sale.balance:
            raise ValidationError("PaymentExceedsBalance")

        row = self._credit(
            sale,
            amount,
            target,
            actor,
            payment_method=payment_method,
            reference=reference,
            narration=narration,
            payment_plan_id=payment_plan_id,
        )
        self.record(
            actor,
            "sale",
            sale.id,
            ActionType.UPDATE,
            {
                "amount": amount,
                "target_type": target,
                "paid_amount": sale.paid_amount,
                "payment_status": sale.payment_status,
                "payment_plan_id": payment_plan_id,
            },
        )

        completed = sale.payment_status == PaymentStatus.PAID
        self.notify(
            NotificationDto(
                to=_recipient(sale),
                subject="Sale Payment Completed" if completed else "Sale Payment Successful",
                body=(
                    f"Dear {sale.name},\n\n"
                    f"We have received your payment of {amount}. "
                    f"Outstanding balance: {sale.balance}."
                ),
                category=NotificationCategory.PAYMENT_COMPLETED if completed else NotificationCategory.PAYMENT_RECEIVED,
                priority=NotificationPriority.HIGH,
                context={"sale_id": sale.id, "payment_id": row.id},
            )
        )
        logger.info("Sale %s received %s (%s), balance %s", sale.id, amount, target.value, sale.balance)
        return row

    def _credit(
        self,
        sale: Sale,
        amount: Decimal,
        target: PaymentTarget,
        actor: Optional[User],
        payment_method: Optional[str] = None,
        reference: Optional[str] = None,
        narration: Optional[str] = None,
        payment_plan_id: Optional[int] = None,
    ) -> Payment:
        sale.paid_amount = to_money(sale.paid_amount) + amount
        if target == PaymentTarget.GENERAL:
            if sale.paid_amount >= to_money(sale.total_payable_amount):
                # Settled: every bucket is paid in full, the discount comes off the price
                for name in FEE_FIELDS:
                    setattr(sale, f"{name}_paid", to_money(getattr(sale, name)))
                sale.property_price_paid = to_money(sale.property_price) - to_money(sale.discount)
        else:
            bucket = TARGET_BUCKETS[target]
            setattr(sale, bucket, to_money(getattr(sale, bucket)) + amount)
        sale.payment_status = payment_status_for(sale.paid_amount, to_money(sale.total_payable_amount))

        row = Payment(
            sale_id=sale.id,
            payment_plan_id=payment_plan_id,
            amount=amount,
            target_type=target,
            payment_method=payment_method or sale.payment_method,
            reference=reference,
            narration=narration,
            created_by_id=actor.id if actor else None,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def get(self, sale_id: int) -> Sale:
        return self.load(sale_id)

    def payments(self, sale_id: int) -> List[Payment]:
        self.load(sale_id)
        return self.db.query(Payment).filter(Payment.sale_id == sale_id).order_by(Payment.id).all()

    def history(self, sale_id: int) -> List[HistoryEntry]:
        return history_for(self.db, "sale", sale_id)
