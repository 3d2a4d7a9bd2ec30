from fastapi import APIRouter, Depends

from sales_engine.api.deps import get_payment_plan_service
from sales_engine.api.responses import detail, respond
from sales_engine.core.auth import get_current_user, User
from sales_engine.schemas.common import ApiResponse
from sales_engine.schemas.payment_plan import (
    PaymentCycleCreate,
    PaymentPlanCancel,
    PaymentPlanCreate,
    PaymentPlanOut,
    PaymentPlanUpdate,
)
from sales_engine.services.payment_plans import PaymentPlanService

router = APIRouter(prefix="/payment-plans", tags=["payment-plans"])


@router.post("", response_model=ApiResponse, status_code=201)
def create_payment_plan(
    payload: PaymentPlanCreate,
    service: PaymentPlanService = Depends(get_payment_plan_service),
    current_user: User = Depends(get_current_user),
):
    plan = service.create(payload, current_user)
    return respond("Payment plan created", plan, PaymentPlanOut)


@router.get("/sale/{sale_id}", response_model=ApiResponse)
def list_payment_plans_for_sale(
    sale_id: int,
    service: PaymentPlanService = Depends(get_payment_plan_service),
    current_user: User = Depends(get_current_user),
):
    return respond("Payment plans", service.list_for_sale(sale_id), PaymentPlanOut)


@router.get("/{plan_id}", response_model=ApiResponse)
def get_payment_plan(
    plan_id: int,
    service: PaymentPlanService = Depends(get_payment_plan_service),
    current_user: User = Depends(get_current_user),
):
    plan = service.get(plan_id)
    return respond("Payment plan", detail(PaymentPlanOut, plan, service.history(plan_id)))


@router.patch("/{plan_id}", response_model=ApiResponse)
def update_payment_plan(
    plan_id: int,
    payload: PaymentPlanUpdate,
    service: PaymentPlanService = Depends(get_payment_plan_service),
    current_user: User = Depends(get_current_user),
):
    plan = service.update(plan_id, payload, current_user)
    return respond("Payment plan updated", plan, PaymentPlanOut)


@router.post("/{plan_id}/cycles", response_model=ApiResponse, status_code=201)
def record_payment_cycle(
    plan_id: int,
    payload: PaymentCycleCreate,
    service: PaymentPlanService = Depends(get_payment_plan_service),
    current_user: User = Depends(get_current_user),
):
    """Record one installment; the amount is credited to the sale."""
    plan = service.record_cycle(plan_id, payload, current_user)
    return respond("Payment cycle recorded", plan, PaymentPlanOut)


@router.post("/{plan_id}/cancel", response_model=ApiResponse)
def cancel_payment_plan(
    plan_id: int,
    payload: PaymentPlanCancel,
    service: PaymentPlanService = Depends(get_payment_plan_service),
    current_user: User = Depends(get_current_user),
):
    plan = service.cancel(plan_id, payload.remark, current_user)
    return respond("Payment plan cancelled", plan, PaymentPlanOut)
