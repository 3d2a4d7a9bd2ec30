from fastapi import APIRouter, Depends

from sales_engine.api.deps import get_allocation_service
from sales_engine.api.responses import detail, respond
from sales_engine.core.auth import get_current_user, User
from sales_engine.schemas.common import ApiResponse
from sales_engine.schemas.letter import AllocationOut, LetterIssue, LetterStatusUpdate
from sales_engine.services.letters import AllocationService

router = APIRouter(prefix="/allocations", tags=["allocations"])


@router.post("", response_model=ApiResponse, status_code=201)
def issue_allocation(
    payload: LetterIssue,
    service: AllocationService = Depends(get_allocation_service),
    current_user: User = Depends(get_current_user),
):
    allocation = service.issue(payload, current_user)
    return respond("Allocation issued", allocation, AllocationOut)


@router.get("/{allocation_id}", response_model=ApiResponse)
def get_allocation(
    allocation_id: int,
    service: AllocationService = Depends(get_allocation_service),
    current_user: User = Depends(get_current_user),
):
    allocation = service.get(allocation_id)
    return respond("Allocation", detail(AllocationOut, allocation, service.history(allocation_id)))


@router.patch("/{allocation_id}/status", response_model=ApiResponse)
def change_allocation_status(
    allocation_id: int,
    payload: LetterStatusUpdate,
    service: AllocationService = Depends(get_allocation_service),
    current_user: User = Depends(get_current_user),
):
    allocation = service.change_status(allocation_id, payload.status, current_user, remark=payload.remark)
    return respond("Status changed", allocation, AllocationOut)


@router.delete("/{allocation_id}", response_model=ApiResponse)
def delete_allocation(
    allocation_id: int,
    service: AllocationService = Depends(get_allocation_service),
    current_user: User = Depends(get_current_user),
):
    service.delete(allocation_id, current_user)
    return respond("Allocation deleted")
