from typing import Optional

from fastapi import APIRouter, Depends

from sales_engine.api.deps import get_reservation_service
from sales_engine.api.responses import detail, respond
from sales_engine.core.auth import get_current_user, get_optional_user, User
from sales_engine.schemas.common import ApiResponse
from sales_engine.schemas.reservation import (
    ReservationCreate,
    ReservationOut,
    ReservationStatusUpdate,
    ReservationValidation,
)
from sales_engine.services.reservations import ReservationService

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post("", response_model=ApiResponse, status_code=201)
def reserve_property(
    payload: ReservationCreate,
    service: ReservationService = Depends(get_reservation_service),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """
    Reserve a property. Open to the public; staff reservations are
    confirmed immediately, everyone else's wait for review.
    """
    reservation = service.reserve(payload, current_user)
    return respond("Reservation created", reservation, ReservationOut)


@router.get("/{reservation_id}", response_model=ApiResponse)
def get_reservation(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_user),
):
    reservation = service.get(reservation_id)
    return respond("Reservation", detail(ReservationOut, reservation, service.history(reservation_id)))


@router.patch("/{reservation_id}/status", response_model=ApiResponse)
def change_reservation_status(
    reservation_id: int,
    payload: ReservationStatusUpdate,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_user),
):
    reservation = service.change_status(reservation_id, payload.status, current_user, remark=payload.remark)
    return respond("Status changed", reservation, ReservationOut)


@router.delete("/{reservation_id}", response_model=ApiResponse)
def cancel_reservation(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_user),
):
    service.cancel(reservation_id, current_user)
    return respond("Reservation cancelled successfully")


@router.post("/validate/{property_id}", response_model=ApiResponse)
def validate_reservation(
    property_id: int,
    payload: ReservationValidation,
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = service.validate(property_id, payload.reservation_code)
    return respond("Reservation code is valid", {"reservation_id": reservation.id, "status": reservation.status})
