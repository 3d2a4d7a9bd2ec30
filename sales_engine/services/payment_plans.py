import logging
from calendar import monthrange
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sales_engine.core.audit import history_for
from sales_engine.core.auth import User
from sales_engine.core.errors import NotFoundError, StateConflictError, ValidationError
from sales_engine.core.permissions import Operation, ensure_can_perform
from sales_engine.models.enums import (
    ActionType,
    PaymentFrequency,
    PaymentPlanStatus,
    PaymentTarget,
    SaleStatus,
)
from sales_engine.models.payment_plan import PaymentPlan
from sales_engine.models.update_history import HistoryEntry
from sales_engine.schemas.notification import (
    NotificationCategory,
    NotificationDto,
    Recipient,
)
from sales_engine.schemas.payment_plan import PaymentCycleCreate, PaymentPlanCreate, PaymentPlanUpdate
from sales_engine.services.base import CENT, BaseService, to_money
from sales_engine.services.sales import SaleService

logger = logging.getLogger(__name__)

MONTHS_PER_CYCLE = {
    PaymentFrequency.MONTHLY: 1,
    PaymentFrequency.QUARTERLY: 3,
    PaymentFrequency.YEARLY: 12,
}


def add_months(dt: datetime, months: int) -> datetime:
    """
    Same day, ``months`` later. Jan 31 + 1 -> Feb 28/29.
    Handles month-end overflow by clamping to the last day of the month.
    """
    month_index = dt.month - 1 + months
    new_year = dt.year + month_index // 12
    new_month = month_index % 12 + 1
    _, last_day = monthrange(new_year, new_month)
    return dt.replace(year=new_year, month=new_month, day=min(dt.day, last_day))


def next_due_date(
    frequency: PaymentFrequency,
    current: datetime,
    custom_date: Optional[datetime] = None,
) -> datetime:
    if frequency == PaymentFrequency.WEEKLY:
        return current + timedelta(days=7)
    if frequency == PaymentFrequency.CUSTOM:
        if custom_date is None:
            raise ValidationError("CustomDateRequired")
        return custom_date
    return add_months(current, MONTHS_PER_CYCLE[frequency])


class PaymentPlanService(BaseService):
    """
    Installment schedules on a sale.

    Each recorded cycle is also credited to the sale as a payment, so a plan
    and its sale's running balance never drift apart.
    """

    integrity_conflict_code = "PaymentPlanAlreadyActive"

    def __init__(self, db, dispatcher=None, outbox=None):
        super().__init__(db, dispatcher, outbox)
        self.sales = SaleService(db, dispatcher, self._outbox)

    def _load(self, plan_id: int, for_update: bool = False) -> PaymentPlan:
        q = self.db.query(PaymentPlan).filter(PaymentPlan.id == plan_id)
        if for_update:
            q = q.with_for_update()
        plan = q.first()
        if not plan:
            raise NotFoundError("PaymentPlanNotFound")
        return plan

    def create(self, payload: PaymentPlanCreate, actor: User) -> PaymentPlan:
        with self.transaction():
            ensure_can_perform(actor, Operation.PAYMENT_PLAN_CREATE)
            sale = self.sales.load(payload.sale_id, for_update=True)
            if sale.status == SaleStatus.DECLINED:
                raise StateConflictError("SaleDeclined")

            active = (
                self.db.query(PaymentPlan.id)
                .filter(PaymentPlan.sale_id == sale.id, PaymentPlan.status == PaymentPlanStatus.ACTIVE)
                .first()
            )
            if active is not None:
                raise StateConflictError("PaymentPlanAlreadyActive")

            per_cycle = to_money(payload.amount_per_cycle)
            if per_cycle <= 0 or payload.total_cycles <= 0:
                raise ValidationError("InvalidAmount")
            expected_total = per_cycle * payload.total_cycles
            if payload.total_amount is None:
                total = expected_total
            else:
                total = to_money(payload.total_amount)
                # One cent of rounding per cycle
                if abs(total - expected_total) > CENT * payload.total_cycles:
                    raise ValidationError("PlanAmountMismatch")
            if total > sale.balance:
                raise ValidationError("PaymentPlanExceedsBalance")

            plan = PaymentPlan(
                sale_id=sale.id,
                client_id=payload.client_id or sale.client_id,
                plan_name=payload.plan_name,
                frequency=payload.frequency,
                custom_date=payload.custom_date,
                amount_per_cycle=per_cycle,
                total_cycles=payload.total_cycles,
                cycles_completed=0,
                total_amount=total,
                start_date=payload.start_date,
                next_payment_date=next_due_date(payload.frequency, payload.start_date, payload.custom_date),
                status=PaymentPlanStatus.ACTIVE,
                remark=payload.remark,
                created_by_id=actor.id,
            )
            self.db.add(plan)
            self.db.flush()
            sale.payment_plan_id = plan.id

            self.record(actor, "payment_plan", plan.id, ActionType.CREATE, {**payload.model_dump(), "total_amount": total})
            self.record(actor, "sale", sale.id, ActionType.UPDATE, {"payment_plan_id": plan.id})
            self.notify(
                NotificationDto(
                    to=Recipient(name=sale.name, email_address=sale.email_address, phone_number=sale.phone_number),
                    subject="Payment Plan Created",
                    body=(
                        f"Dear {sale.name},\n\n"
                        f"A {plan.frequency.value.lower()} payment plan of {plan.total_cycles} payments of "
                        f"{per_cycle} has been set up. Your first payment is due on "
                        f"{plan.next_payment_date:%d %B %Y}."
                    ),
                    category=NotificationCategory.PAYMENT_PLAN_CREATED,
                    context={"payment_plan_id": plan.id, "sale_id": sale.id},
                )
            )
            logger.info("Payment plan %s created for sale %s", plan.id, sale.id)
        return plan

    def _cycle_amount(self, plan: PaymentPlan) -> Decimal:
        # The final cycle absorbs whatever rounding is left over
        if plan.cycles_completed + 1 == plan.total_cycles:
            return to_money(plan.total_amount) - to_money(plan.amount_per_cycle) * plan.cycles_completed
        return to_money(plan.amount_per_cycle)

    def record_cycle(self, plan_id: int, cycle: PaymentCycleCreate, actor: User) -> PaymentPlan:
        with self.transaction():
            ensure_can_perform(actor, Operation.PAYMENT_PLAN_RECORD_CYCLE)
            plan = self._load(plan_id, for_update=True)
            if plan.status != PaymentPlanStatus.ACTIVE:
                raise StateConflictError("PaymentPlanNotActive")

            sale = self.sales.load(plan.sale_id, for_update=True)
            if sale.status != SaleStatus.APPROVED:
                raise StateConflictError("SaleNotApproved")

            amount = self._cycle_amount(plan)
            plan.cycles_completed += 1
            if plan.cycles_completed >= plan.total_cycles:
                plan.status = PaymentPlanStatus.COMPLETED
                plan.next_payment_date = None
            else:
                current = plan.next_payment_date or plan.start_date
                plan.next_payment_date = next_due_date(plan.frequency, current, cycle.custom_date)
                if cycle.custom_date is not None:
                    plan.custom_date = cycle.custom_date

            credited = Decimal("0")
            # Direct payments may already have settled the sale
            if sale.balance > 0:
                credited = min(amount, sale.balance)
                self.sales.apply_payment(
                    sale,
                    credited,
                    PaymentTarget.GENERAL,
                    actor,
                    payment_method=cycle.payment_method,
                    reference=cycle.reference,
                    narration=cycle.narration or f"Payment plan cycle {plan.cycles_completed}/{plan.total_cycles}",
                    payment_plan_id=plan.id,
                )

            self.record(
                actor,
                "payment_plan",
                plan.id,
                ActionType.UPDATE,
                {
                    "cycles_completed": plan.cycles_completed,
                    "amount": amount,
                    "credited": credited,
                    "next_payment_date": plan.next_payment_date,
                    "status": plan.status,
                },
            )
            logger.info(
                "Payment plan %s cycle %s/%s recorded",
                plan.id,
                plan.cycles_completed,
                plan.total_cycles,
            )
        return plan

    def update(self, plan_id: int, changes: PaymentPlanUpdate, actor: User) -> PaymentPlan:
        """
        Edit an active plan. Amounts and cycle count can only change before the
        first cycle is recorded, and are checked like a new plan.
        """
        with self.transaction():
            ensure_can_perform(actor, Operation.PAYMENT_PLAN_UPDATE)
            plan = self._load(plan_id, for_update=True)
            if plan.status != PaymentPlanStatus.ACTIVE:
                raise StateConflictError("PaymentPlanNotActive")

            data = changes.model_dump(exclude_none=True)
            if data.keys() & {"amount_per_cycle", "total_cycles", "total_amount"}:
                if plan.cycles_completed > 0:
                    raise StateConflictError("PaymentPlanAlreadyStarted")
                sale = self.sales.load(plan.sale_id, for_update=True)
                per_cycle = to_money(data.get("amount_per_cycle", plan.amount_per_cycle))
                total_cycles = data.get("total_cycles", plan.total_cycles)
                if per_cycle <= 0 or total_cycles <= 0:
                    raise ValidationError("InvalidAmount")
                total = to_money(data.get("total_amount", per_cycle * total_cycles))
                if abs(total - per_cycle * total_cycles) > CENT * total_cycles:
                    raise ValidationError("PlanAmountMismatch")
                if total > sale.balance:
                    raise ValidationError("PaymentPlanExceedsBalance")
                plan.amount_per_cycle = per_cycle
                plan.total_cycles = total_cycles
                plan.total_amount = total

            frequency = data.get("frequency", plan.frequency)
            custom_date = data.get("custom_date", plan.custom_date)
            if frequency == PaymentFrequency.CUSTOM and custom_date is None:
                raise ValidationError("CustomDateRequired")
            for name in ("plan_name", "frequency", "custom_date", "remark"):
                if name in data:
                    setattr(plan, name, data[name])
            if "custom_date" in data and frequency == PaymentFrequency.CUSTOM:
                plan.next_payment_date = custom_date

            self.record(actor, "payment_plan", plan.id, ActionType.UPDATE, {**data, "total_amount": plan.total_amount})
            logger.info("Payment plan %s updated", plan.id)
        return plan

    def cancel(self, plan_id: int, remark: Optional[str], actor: User) -> PaymentPlan:
        with self.transaction():
            ensure_can_perform(actor, Operation.PAYMENT_PLAN_CANCEL)
            plan = self._load(plan_id, for_update=True)
            if plan.status != PaymentPlanStatus.ACTIVE:
                raise StateConflictError("PaymentPlanNotActive")

            plan.status = PaymentPlanStatus.CANCELLED
            plan.remark = remark
            plan.next_payment_date = None
            sale = plan.sale

            self.record(actor, "payment_plan", plan.id, ActionType.UPDATE, {"status": plan.status, "remark": remark})
            self.notify(
                NotificationDto(
                    to=Recipient(name=sale.name, email_address=sale.email_address, phone_number=sale.phone_number),
                    subject="Payment Plan Cancelled",
                    body=f"Dear {sale.name},\n\nYour payment plan has been cancelled. {remark or ''}".strip(),
                    category=NotificationCategory.PAYMENT_PLAN_CANCELLED,
                    context={"payment_plan_id": plan.id, "sale_id": sale.id},
                )
            )
            logger.info("Payment plan %s cancelled", plan.id)
        return plan

    def get(self, plan_id: int) -> PaymentPlan:
        return self._load(plan_id)

    def list_for_sale(self, sale_id: int) -> List[PaymentPlan]:
        """Every plan ever set up on a sale, newest first."""
        self.sales.load(sale_id)
        return (
            self.db.query(PaymentPlan)
            .filter(PaymentPlan.sale_id == sale_id)
            .order_by(PaymentPlan.id.desc())
            .all()
        )

    def history(self, plan_id: int) -> List[HistoryEntry]:
        return history_for(self.db, "payment_plan", plan_id)
