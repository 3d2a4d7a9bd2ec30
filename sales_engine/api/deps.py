from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from sales_engine.core.database import SessionLocal
from sales_engine.core.notifications import NotificationDispatcher, get_dispatcher
from sales_engine.services.letters import AllocationService, OfferService
from sales_engine.services.payment_plans import PaymentPlanService
from sales_engine.services.registry import PropertyRegistry
from sales_engine.services.reservations import ReservationService
from sales_engine.services.sales import SaleService


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_registry(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> PropertyRegistry:
    return PropertyRegistry(db, dispatcher)


def get_reservation_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ReservationService:
    return ReservationService(db, dispatcher)


def get_sale_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> SaleService:
    return SaleService(db, dispatcher)


def get_offer_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> OfferService:
    return OfferService(db, dispatcher)


def get_allocation_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AllocationService:
    return AllocationService(db, dispatcher)


def get_payment_plan_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> PaymentPlanService:
    return PaymentPlanService(db, dispatcher)
