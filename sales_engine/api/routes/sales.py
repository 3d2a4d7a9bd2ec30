from typing import Optional

from fastapi import APIRouter, Depends

from sales_engine.api.deps import get_sale_service
from sales_engine.api.responses import detail, respond
from sales_engine.core.auth import get_current_user, get_optional_user, User
from sales_engine.schemas.common import ApiResponse
from sales_engine.schemas.sale import (
    PaymentOut,
    SaleApproval,
    SaleCreate,
    SaleDecline,
    SaleOut,
    SalePaymentCreate,
    SaleUpdate,
)
from sales_engine.services.sales import SaleService

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("", response_model=ApiResponse, status_code=201)
def create_sale(
    payload: SaleCreate,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(get_current_user),
):
    sale = service.create(payload, current_user)
    return respond("Sale created", sale, SaleOut)


@router.post("/apply", response_model=ApiResponse, status_code=201)
def apply_for_sale(
    payload: SaleCreate,
    service: SaleService = Depends(get_sale_service),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Public purchase application, optionally quoting a reservation code."""
    sale = service.apply(payload, current_user)
    return respond("Purchase application submitted", sale, SaleOut)


@router.get("/{sale_id}", response_model=ApiResponse)
def get_sale(
    sale_id: int,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(get_current_user),
):
    sale = service.get(sale_id)
    return respond("Sale", detail(SaleOut, sale, service.history(sale_id)))


@router.patch("/{sale_id}", response_model=ApiResponse)
def update_sale(
    sale_id: int,
    payload: SaleUpdate,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(get_current_user),
):
    sale = service.update(sale_id, payload, current_user)
    return respond("Sale updated", sale, SaleOut)


@router.delete("/{sale_id}", response_model=ApiResponse)
def delete_sale(
    sale_id: int,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(get_current_user),
):
    service.delete(sale_id, current_user)
    return respond("Sale deleted")


@router.post("/{sale_id}/approve", response_model=ApiResponse)
def approve_sale(
    sale_id: int,
    payload: SaleApproval,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(get_current_user),
):
    sale = service.approve(sale_id, payload, current_user)
    return respond("Sale approved", sale, SaleOut)


@router.post("/{sale_id}/decline", response_model=ApiResponse)
def decline_sale(
    sale_id: int,
    payload: SaleDecline,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(get_current_user),
):
    sale = service.decline(sale_id, payload.remark, current_user)
    return respond("Sale declined", sale, SaleOut)


@router.post("/{sale_id}/payments", response_model=ApiResponse, status_code=201)
def record_sale_payment(
    sale_id: int,
    payload: SalePaymentCreate,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(get_current_user),
):
    sale = service.record_payment(sale_id, payload, current_user)
    return respond("Payment recorded", sale, SaleOut)


@router.get("/{sale_id}/payments", response_model=ApiResponse)
def list_sale_payments(
    sale_id: int,
    service: SaleService = Depends(get_sale_service),
    current_user: User = Depends(get_current_user),
):
    return respond("Payments", service.payments(sale_id), PaymentOut)
