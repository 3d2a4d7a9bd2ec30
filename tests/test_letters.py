"""
Tests for offer and allocation letters.

Covers:
- issuance gates on the sale status
- idempotent re-issue (file replaced, one letter, one notification)
- status mirroring onto the sale
- deletion resetting the sale mirror
"""
from decimal import Decimal

import pytest

from sales_engine.core.errors import NotFoundError, PermissionDeniedError, StateConflictError, ValidationError
from sales_engine.models.allocation import Allocation
from sales_engine.models.enums import (
    AllocationStatus,
    OfferStatus,
    PropertyStatus,
    SaleAllocationStatus,
    SaleOfferStatus,
)
from sales_engine.models.offer import Offer
from sales_engine.schemas.letter import LetterIssue
from sales_engine.schemas.sale import SaleApproval


class TestOfferIssue:
    def test_issue_on_approved_sale(self, offers, approved_sale, admin, dispatcher):
        offer = offers.issue(LetterIssue(sale_id=approved_sale.id, file_url="https://files/offer-1.pdf"), admin)

        assert offer.status == OfferStatus.OFFERED
        assert offer.offer_number.startswith("OF") and len(offer.offer_number) == 8
        assert offer.house_id == approved_sale.property_id
        assert approved_sale.offer_status == SaleOfferStatus.OFFERED
        assert approved_sale.offer_id == offer.id
        assert dispatcher.subjects[-1] == "Offer of House"

    def test_reissue_updates_file_only(self, offers, approved_sale, admin, dispatcher, db):
        first = offers.issue(LetterIssue(sale_id=approved_sale.id, file_url="https://files/v1.pdf"), admin)
        sent_before = len(dispatcher.sent)

        second = offers.issue(LetterIssue(sale_id=approved_sale.id, file_url="https://files/v2.pdf"), admin)

        assert second.id == first.id
        assert second.file_url == "https://files/v2.pdf"
        assert db.query(Offer).count() == 1
        assert len(dispatcher.sent) == sent_before
        assert [entry.action_type.value for entry in offers.history(first.id)] == ["CREATE", "UPDATE"]

    def test_pending_sale(self, offers, sales, make_property, sale_payload, admin):
        prop = make_property()
        sale = sales.create(sale_payload(prop), admin)

        with pytest.raises(StateConflictError) as exc:
            offers.issue(LetterIssue(sale_id=sale.id, file_url="x"), admin)
        assert exc.value.code == "UnableToOfferPendingSale"

    def test_declined_sale(self, offers, sales, make_property, sale_payload, admin):
        prop = make_property()
        sale = sales.create(sale_payload(prop), admin)
        sales.decline(sale.id, None, admin)

        with pytest.raises(StateConflictError) as exc:
            offers.issue(LetterIssue(sale_id=sale.id, file_url="x"), admin)
        assert exc.value.code == "UnableToOfferDeclinedSale"

    def test_unknown_sale(self, offers, admin):
        with pytest.raises(NotFoundError) as exc:
            offers.issue(LetterIssue(sale_id=321, file_url="x"), admin)
        assert exc.value.code == "SaleNotAvailable"

    def test_customercare_cannot_issue(self, offers, approved_sale, customercare):
        with pytest.raises(PermissionDeniedError):
            offers.issue(LetterIssue(sale_id=approved_sale.id, file_url="x"), customercare)


class TestOfferStatus:
    @pytest.fixture
    def offer(self, offers, approved_sale, admin):
        return offers.issue(LetterIssue(sale_id=approved_sale.id, file_url="https://files/offer.pdf"), admin)

    def test_cancel_mirrors_onto_sale(self, offers, offer, approved_sale, admin):
        offers.change_status(offer.id, "CANCELED", admin)

        assert offer.status == OfferStatus.CANCELED
        assert approved_sale.offer_status == SaleOfferStatus.CANCELED

    def test_approve_restores(self, offers, offer, approved_sale, admin):
        offers.change_status(offer.id, "CANCELED", admin)
        offers.change_status(offer.id, "APPROVED", admin)

        assert offer.status == OfferStatus.OFFERED
        assert approved_sale.offer_status == SaleOfferStatus.OFFERED

    def test_invalid_status_leaves_both_unchanged(self, offers, offer, approved_sale, admin):
        with pytest.raises(ValidationError) as exc:
            offers.change_status(offer.id, "ALLOCATED", admin)
        assert exc.value.code == "InvalidStatus"
        assert offer.status == OfferStatus.OFFERED
        assert approved_sale.offer_status == SaleOfferStatus.OFFERED

    def test_unknown_offer(self, offers, admin):
        with pytest.raises(NotFoundError) as exc:
            offers.change_status(77, "CANCELED", admin)
        assert exc.value.code == "OfferNotAvailable"

    def test_delete_resets_sale_mirror(self, offers, offer, approved_sale, admin, db):
        offer_id = offer.id
        offers.delete(offer_id, admin)

        assert db.query(Offer).count() == 0
        assert approved_sale.offer_status == SaleOfferStatus.PENDING
        assert approved_sale.offer_id is None
        assert [entry.action_type.value for entry in offers.history(offer_id)] == ["CREATE", "DELETE"]

    def test_can_issue_again_after_delete(self, offers, offer, approved_sale, admin):
        offers.delete(offer.id, admin)
        again = offers.issue(LetterIssue(sale_id=approved_sale.id, file_url="https://files/new.pdf"), admin)
        assert approved_sale.offer_id == again.id


class TestAllocation:
    def test_issue_and_cancel(self, allocations, approved_sale, admin, dispatcher):
        allocation = allocations.issue(LetterIssue(sale_id=approved_sale.id, file_url="https://files/al.pdf"), admin)

        assert allocation.allocation_number.startswith("AL")
        assert allocation.status == AllocationStatus.ALLOCATED
        assert approved_sale.allocation_status == SaleAllocationStatus.ALLOCATED
        assert approved_sale.allocation_id == allocation.id
        assert dispatcher.subjects[-1] == "Allocation of House"

        allocations.change_status(allocation.id, "CANCELED", admin)
        assert approved_sale.allocation_status == SaleAllocationStatus.CANCELED

    def test_pending_sale(self, allocations, sales, make_property, sale_payload, admin):
        prop = make_property()
        sale = sales.create(sale_payload(prop), admin)
        with pytest.raises(StateConflictError) as exc:
            allocations.issue(LetterIssue(sale_id=sale.id, file_url="x"), admin)
        assert exc.value.code == "UnableToAllocatePendingSale"

    def test_offer_and_allocation_are_independent(self, offers, allocations, approved_sale, admin, db):
        offers.issue(LetterIssue(sale_id=approved_sale.id, file_url="of"), admin)
        allocations.issue(LetterIssue(sale_id=approved_sale.id, file_url="al"), admin)

        assert db.query(Offer).count() == 1
        assert db.query(Allocation).count() == 1
        assert approved_sale.offer_status == SaleOfferStatus.OFFERED
        assert approved_sale.allocation_status == SaleAllocationStatus.ALLOCATED


def test_sale_to_offer_flow(sales, offers, make_property, sale_payload, admin):
    """5,000,000 house, 200,000 facility fee, 100,000 discount; approved, then offered twice."""
    house = make_property(price=Decimal("5000000"))
    sale = sales.create(
        sale_payload(house, facility_fee=Decimal("200000"), discount=Decimal("100000")),
        admin,
    )
    assert sale.total_payable_amount == Decimal("5100000")

    sales.approve(sale.id, SaleApproval(), admin)
    assert house.status == PropertyStatus.SOLD

    first = offers.issue(LetterIssue(sale_id=sale.id, file_url="https://files/offer-a.pdf"), admin)
    second = offers.issue(LetterIssue(sale_id=sale.id, file_url="https://files/offer-b.pdf"), admin)

    assert first.id == second.id
    assert len(offers.history(first.id)) == 2
    assert sale.offer_status == SaleOfferStatus.OFFERED
