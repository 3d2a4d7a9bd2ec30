from fastapi import APIRouter, Depends

from sales_engine.api.deps import get_offer_service
from sales_engine.api.responses import detail, respond
from sales_engine.core.auth import get_current_user, User
from sales_engine.schemas.common import ApiResponse
from sales_engine.schemas.letter import LetterIssue, LetterStatusUpdate, OfferOut
from sales_engine.services.letters import OfferService

router = APIRouter(prefix="/offers", tags=["offers"])


@router.post("", response_model=ApiResponse, status_code=201)
def issue_offer(
    payload: LetterIssue,
    service: OfferService = Depends(get_offer_service),
    current_user: User = Depends(get_current_user),
):
    """Issue the offer letter for an approved sale, or replace its file."""
    offer = service.issue(payload, current_user)
    return respond("Offer issued", offer, OfferOut)


@router.get("/{offer_id}", response_model=ApiResponse)
def get_offer(
    offer_id: int,
    service: OfferService = Depends(get_offer_service),
    current_user: User = Depends(get_current_user),
):
    offer = service.get(offer_id)
    return respond("Offer", detail(OfferOut, offer, service.history(offer_id)))


@router.patch("/{offer_id}/status", response_model=ApiResponse)
def change_offer_status(
    offer_id: int,
    payload: LetterStatusUpdate,
    service: OfferService = Depends(get_offer_service),
    current_user: User = Depends(get_current_user),
):
    offer = service.change_status(offer_id, payload.status, current_user, remark=payload.remark)
    return respond("Status changed", offer, OfferOut)


@router.delete("/{offer_id}", response_model=ApiResponse)
def delete_offer(
    offer_id: int,
    service: OfferService = Depends(get_offer_service),
    current_user: User = Depends(get_current_user),
):
    service.delete(offer_id, current_user)
    return respond("Offer deleted")
