"""
Tests for the Sale Workflow.

Covers:
- direct sales and sales converted from a reservation
- total payable computation and approval overrides
- decline and property release
- editing and deleting sales that never went through
- payments, fee buckets and balance guards
"""
from decimal import Decimal

import pydantic
import pytest

from sales_engine.core.errors import NotFoundError, PermissionDeniedError, StateConflictError, ValidationError
from sales_engine.models.enums import (
    PaymentFrequency,
    PaymentStatus,
    PaymentTarget,
    PropertyStatus,
    PropertyType,
    RegistrationFeesStatus,
    SaleStatus,
)
from sales_engine.models.payment import Payment
from sales_engine.schemas.payment_plan import PaymentPlanCreate
from sales_engine.schemas.sale import SaleApproval, SalePaymentCreate, SaleUpdate
from sales_engine.services.sales import compute_total, payment_status_for


# =============================================================================
# Pure helpers
# =============================================================================


class TestComputeTotal:
    def test_price_plus_fees_minus_discount(self):
        fees = {"facility_fee": Decimal("200000"), "agency_fee": Decimal("50000")}
        assert compute_total(Decimal("5000000"), fees, Decimal("100000")) == Decimal("5150000.00")

    def test_missing_fees_count_as_zero(self):
        assert compute_total(Decimal("1000"), {}, None) == Decimal("1000.00")


class TestPaymentStatus:
    def test_unpaid(self):
        assert payment_status_for(Decimal("0"), Decimal("100")) == PaymentStatus.UNPAID

    def test_partial(self):
        assert payment_status_for(Decimal("40"), Decimal("100")) == PaymentStatus.PARTIAL

    def test_paid(self):
        assert payment_status_for(Decimal("100"), Decimal("100")) == PaymentStatus.PAID


# =============================================================================
# Create / apply
# =============================================================================


class TestCreate:
    def test_direct_sale_holds_property(self, sales, make_property, sale_payload, accountant, dispatcher):
        prop = make_property()

        sale = sales.create(
            sale_payload(prop, facility_fee=Decimal("200000"), discount=Decimal("100000")),
            accountant,
        )

        assert sale.status == SaleStatus.PENDING
        assert sale.payment_status == PaymentStatus.UNPAID
        assert sale.paid_amount == Decimal("0")
        assert sale.total_payable_amount == Decimal("5100000")
        assert sale.house_id == prop.id and sale.plot_id is None
        assert len(sale.transaction_ref) == 12
        assert prop.status == PropertyStatus.RESERVED
        assert prop.sale_id == sale.id
        assert dispatcher.subjects == ["Purchase Application Submitted"]

    def test_agent_cannot_create(self, sales, make_property, sale_payload, agent):
        prop = make_property()
        with pytest.raises(PermissionDeniedError):
            sales.create(sale_payload(prop), agent)
        assert prop.status == PropertyStatus.AVAILABLE

    def test_public_application_needs_no_role(self, sales, make_property, sale_payload):
        prop = make_property()
        sale = sales.apply(sale_payload(prop))
        assert sale.created_by_id is None
        assert sale.status == SaleStatus.PENDING

    def test_unavailable_property(self, sales, make_property, sale_payload, admin):
        prop = make_property(status=PropertyStatus.UNAVAILABLE)
        with pytest.raises(StateConflictError) as exc:
            sales.create(sale_payload(prop), admin)
        assert exc.value.code == "PropertyNotAvailableForSale"

    def test_second_active_sale_refused(self, sales, make_property, sale_payload, admin):
        prop = make_property()
        sales.create(sale_payload(prop), admin)

        with pytest.raises(StateConflictError) as exc:
            sales.create(sale_payload(prop, name="Someone Else"), admin)
        assert exc.value.code == "PropertyAlreadySold"

    def test_negative_total_refused(self, sales, make_property, sale_payload, admin):
        prop = make_property(price=Decimal("1000"))
        with pytest.raises(ValidationError) as exc:
            sales.create(sale_payload(prop, discount=Decimal("5000")), admin)
        assert exc.value.code == "InvalidAmount"

    def test_plot_sale_links_its_unit(self, sales, make_property, sale_payload, admin):
        prop = make_property(property_type=PropertyType.PLOT, unit_number="7")
        sale = sales.create(sale_payload(prop), admin)

        assert sale.unit is prop
        assert sale.plot_id == prop.id
        assert sale.house_id is None


class TestAmountValidation:
    @pytest.mark.parametrize("field", ["facility_fee", "agency_fee", "infrastructure_cost", "discount", "registration_fees"])
    def test_negative_amounts_rejected_on_create(self, make_property, sale_payload, field):
        prop = make_property()
        with pytest.raises(pydantic.ValidationError) as exc:
            sale_payload(prop, **{field: Decimal("-1")})
        assert exc.value.errors()[0]["loc"] == (field,)

    @pytest.mark.parametrize("field", ["water_fee", "discount", "paid_amount"])
    def test_negative_amounts_rejected_on_approval(self, field):
        with pytest.raises(pydantic.ValidationError):
            SaleApproval(**{field: Decimal("-0.01")})

    def test_zero_and_omitted_amounts_allowed(self):
        approval = SaleApproval(discount=Decimal("0"))
        assert approval.discount == Decimal("0")
        assert approval.facility_fee is None

    def test_negative_discount_cannot_inflate_total(self, sales, make_property, sale_payload, admin):
        prop = make_property()
        sale = sales.create(sale_payload(prop), admin)

        with pytest.raises(pydantic.ValidationError):
            sales.approve(sale.id, SaleApproval(discount=Decimal("-100000")), admin)
        assert sale.total_payable_amount == Decimal("5000000")
        assert sale.status == SaleStatus.PENDING


class TestCreateFromReservation:
    @pytest.fixture
    def reserved(self, reservations, make_property, reservation_payload, customercare):
        prop = make_property()
        reservation = reservations.reserve(reservation_payload(prop), customercare)
        return prop, reservation

    def test_converts_reservation(self, sales, sale_payload, reserved):
        prop, reservation = reserved

        sale = sales.apply(sale_payload(prop, reservation_code=reservation.code))

        assert sale.reservation_id == reservation.id
        assert prop.status == PropertyStatus.RESERVED
        assert prop.reservation_id == reservation.id
        assert prop.sale_id == sale.id

    def test_client_matched_by_phone(self, sales, sale_payload, reserved):
        prop, reservation = reserved
        sale = sales.apply(sale_payload(prop, reservation_code=reservation.code, email_address="new@example.com"))
        assert sale.reservation_id == reservation.id

    def test_unknown_code(self, sales, sale_payload, reserved):
        prop, _ = reserved
        with pytest.raises(ValidationError) as exc:
            sales.apply(sale_payload(prop, reservation_code="000000"))
        assert exc.value.code == "InvalidReservationCode"

    def test_property_mismatch(self, sales, sale_payload, reserved, make_property):
        _, reservation = reserved
        other = make_property(unit_number="13")
        with pytest.raises(StateConflictError) as exc:
            sales.apply(sale_payload(other, reservation_code=reservation.code))
        assert exc.value.code == "ReservationPropertyMismatch"

    def test_shared_code_resolves_by_property(
        self, sales, reservations, make_property, reservation_payload, sale_payload, customercare, db
    ):
        first = make_property(unit_number="12")
        second = make_property(unit_number="13")
        other = dict(name="Ngozi Buyer", email_address="ngozi@example.com", phone_number="+2348000000002", client_id="client-2")
        first_reservation = reservations.reserve(reservation_payload(first), customercare)
        second_reservation = reservations.reserve(reservation_payload(second, **other), customercare)
        # Codes are random per reservation; force a collision
        first_reservation.code = "123456"
        second_reservation.code = "123456"
        db.commit()

        sale = sales.apply(sale_payload(second, reservation_code="123456", **other))

        assert sale.reservation_id == second_reservation.id
        assert second.sale_id == sale.id
        assert first.sale_id is None

        first_sale = sales.apply(sale_payload(first, reservation_code="123456"))
        assert first_sale.reservation_id == first_reservation.id

    def test_pending_reservation_not_approved(self, sales, reservations, make_property, reservation_payload, sale_payload):
        prop = make_property()
        reservation = reservations.reserve(reservation_payload(prop))

        with pytest.raises(StateConflictError) as exc:
            sales.apply(sale_payload(prop, reservation_code=reservation.code))
        assert exc.value.code == "ReservationNotApproved"

    def test_another_client(self, sales, sale_payload, reserved):
        prop, reservation = reserved
        with pytest.raises(StateConflictError) as exc:
            sales.apply(
                sale_payload(
                    prop,
                    reservation_code=reservation.code,
                    email_address="thief@example.com",
                    phone_number="+2348099999999",
                )
            )
        assert exc.value.code == "PropertyReservedByAnotherClient"


# =============================================================================
# Approve / decline
# =============================================================================


class TestApprove:
    def test_approve_sells_property(self, sales, make_property, sale_payload, admin, dispatcher):
        prop = make_property()
        sale = sales.create(sale_payload(prop, client_id="client-1"), admin)

        approved = sales.approve(sale.id, SaleApproval(water_fee=Decimal("50000")), admin)

        assert approved.status == SaleStatus.APPROVED
        assert approved.registration_fees_status == RegistrationFeesStatus.PAID
        assert approved.total_payable_amount == Decimal("5050000")
        assert approved.payment_status == PaymentStatus.UNPAID
        assert prop.status == PropertyStatus.SOLD
        assert prop.sale_id == sale.id
        assert prop.client_id == "client-1"
        assert dispatcher.subjects[-1] == "Property Purchase Approved"

    def test_initial_payment_recorded(self, sales, make_property, sale_payload, admin, db):
        prop = make_property()
        sale = sales.create(sale_payload(prop), admin)

        approved = sales.approve(sale.id, SaleApproval(paid_amount=Decimal("1000000")), admin)

        assert approved.paid_amount == Decimal("1000000")
        assert approved.payment_status == PaymentStatus.PARTIAL
        assert approved.property_price_paid == Decimal("1000000")
        rows = db.query(Payment).filter(Payment.sale_id == sale.id).all()
        assert [row.amount for row in rows] == [Decimal("1000000")]

    def test_full_payment_settles_every_bucket(self, sales, make_property, sale_payload, admin):
        prop = make_property()
        sale = sales.create(sale_payload(prop, facility_fee=Decimal("200000"), discount=Decimal("100000")), admin)

        approved = sales.approve(
            sale.id,
            SaleApproval(paid_amount=Decimal("5100000"), payment_method="FULLPAYMENT"),
            admin,
        )

        assert approved.payment_status == PaymentStatus.PAID
        assert approved.facility_fee_paid == Decimal("200000")
        assert approved.property_price_paid == Decimal("4900000")

    def test_paid_exceeds_total(self, sales, make_property, sale_payload, admin):
        prop = make_property(price=Decimal("1000"))
        sale = sales.create(sale_payload(prop), admin)

        with pytest.raises(ValidationError) as exc:
            sales.approve(sale.id, SaleApproval(paid_amount=Decimal("1001")), admin)
        assert exc.value.code == "PaidAmountExceedsTotal"
        assert sale.status == SaleStatus.PENDING
        assert prop.status == PropertyStatus.RESERVED

    def test_only_pending(self, sales, approved_sale, admin):
        with pytest.raises(StateConflictError) as exc:
            sales.approve(approved_sale.id, SaleApproval(), admin)
        assert exc.value.code == "SaleNotInPendingState"

    def test_unknown_sale(self, sales, admin):
        with pytest.raises(NotFoundError) as exc:
            sales.approve(404, SaleApproval(), admin)
        assert exc.value.code == "SaleNotAvailable"

    def test_accountant_cannot_approve(self, sales, make_property, sale_payload, admin, accountant):
        prop = make_property()
        sale = sales.create(sale_payload(prop), admin)
        with pytest.raises(PermissionDeniedError):
            sales.approve(sale.id, SaleApproval(), accountant)


class TestDecline:
    def test_direct_sale_releases_property(self, sales, make_property, sale_payload, admin, db):
        prop = make_property()
        sale = sales.create(sale_payload(prop), admin)

        declined = sales.decline(sale.id, "Documents missing", admin)
        db.refresh(prop)

        assert declined.status == SaleStatus.DECLINED
        assert prop.status == PropertyStatus.AVAILABLE
        assert prop.sale_id is None

    def test_reservation_hold_is_restored(self, sales, reservations, make_property, reservation_payload, sale_payload, customercare, admin, db):
        prop = make_property()
        reservation = reservations.reserve(reservation_payload(prop), customercare)
        sale = sales.apply(sale_payload(prop, reservation_code=reservation.code))

        sales.decline(sale.id, None, admin)
        db.refresh(prop)

        assert prop.status == PropertyStatus.RESERVED
        assert prop.reservation_id == reservation.id
        assert prop.sale_id is None

    def test_declined_property_can_be_sold_again(self, sales, make_property, sale_payload, admin):
        prop = make_property()
        first = sales.create(sale_payload(prop), admin)
        sales.decline(first.id, None, admin)

        second = sales.create(sale_payload(prop), admin)
        assert second.id != first.id

    def test_only_pending(self, sales, approved_sale, admin):
        with pytest.raises(StateConflictError) as exc:
            sales.decline(approved_sale.id, None, admin)
        assert exc.value.code == "SaleNotInPendingState"


class TestUpdate:
    def test_fee_changes_recompute_total(self, sales, make_property, sale_payload, accountant):
        prop = make_property()
        sale = sales.create(sale_payload(prop, facility_fee=Decimal("200000")), accountant)

        updated = sales.update(
            sale.id,
            SaleUpdate(facility_fee=Decimal("300000"), discount=Decimal("50000"), phone_number="+2348000000009"),
            accountant,
        )

        assert updated.total_payable_amount == Decimal("5250000")
        assert updated.facility_fee == Decimal("300000")
        assert updated.phone_number == "+2348000000009"
        assert updated.name == "Bola Buyer"

        last = sales.history(sale.id)[-1].as_dict()
        assert last["actionType"] == "UPDATE"
        assert last["facility_fee"] == 300000.0
        assert last["total_payable_amount"] == 5250000.0
        assert "name" not in last

    def test_discount_beyond_total_refused(self, sales, make_property, sale_payload, admin):
        prop = make_property(price=Decimal("1000"))
        sale = sales.create(sale_payload(prop), admin)

        with pytest.raises(ValidationError) as exc:
            sales.update(sale.id, SaleUpdate(discount=Decimal("1001")), admin)
        assert exc.value.code == "InvalidAmount"
        assert sale.discount == Decimal("0")
        assert sale.total_payable_amount == Decimal("1000")

    def test_approved_sale_is_frozen(self, sales, approved_sale, admin):
        with pytest.raises(StateConflictError) as exc:
            sales.update(approved_sale.id, SaleUpdate(discount=Decimal("1")), admin)
        assert exc.value.code == "SaleNotInPendingState"
        assert approved_sale.total_payable_amount == Decimal("5200000")

    def test_agent_cannot_update(self, sales, make_property, sale_payload, admin, agent):
        sale = sales.create(sale_payload(make_property()), admin)
        with pytest.raises(PermissionDeniedError):
            sales.update(sale.id, SaleUpdate(name="Changed"), agent)

    def test_negative_fee_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            SaleUpdate(agency_fee=Decimal("-1"))


class TestDelete:
    def test_pending_sale_releases_property(self, sales, make_property, sale_payload, customercare, db):
        prop = make_property()
        sale = sales.create(sale_payload(prop), customercare)
        sale_id = sale.id

        sales.delete(sale_id, customercare)
        db.refresh(prop)

        assert prop.status == PropertyStatus.AVAILABLE
        assert prop.sale_id is None
        with pytest.raises(NotFoundError):
            sales.get(sale_id)
        assert [entry.action_type.value for entry in sales.history(sale_id)] == ["CREATE", "DELETE"]

    def test_reservation_hold_survives(self, sales, reservations, make_property, reservation_payload, sale_payload, customercare, db):
        prop = make_property()
        reservation = reservations.reserve(reservation_payload(prop), customercare)
        sale = sales.apply(sale_payload(prop, reservation_code=reservation.code))

        sales.delete(sale.id, customercare)
        db.refresh(prop)

        assert prop.status == PropertyStatus.RESERVED
        assert prop.reservation_id == reservation.id
        assert prop.sale_id is None

    def test_declined_sale_leaves_new_sale_alone(self, sales, make_property, sale_payload, admin, db):
        prop = make_property()
        first = sales.create(sale_payload(prop), admin)
        sales.decline(first.id, None, admin)
        second = sales.create(sale_payload(prop), admin)

        sales.delete(first.id, admin)
        db.refresh(prop)

        assert prop.status == PropertyStatus.RESERVED
        assert prop.sale_id == second.id

    def test_payment_plans_go_with_the_sale(self, sales, plans, make_property, sale_payload, admin, plan_start):
        sale = sales.create(sale_payload(make_property()), admin)
        plan = plans.create(
            PaymentPlanCreate(
                sale_id=sale.id,
                frequency=PaymentFrequency.MONTHLY,
                amount_per_cycle=Decimal("1000000"),
                total_cycles=2,
                start_date=plan_start,
            ),
            admin,
        )
        plan_id = plan.id

        sales.delete(sale.id, admin)

        with pytest.raises(NotFoundError):
            plans.get(plan_id)
        assert plans.history(plan_id)[-1].action_type.value == "DELETE"

    def test_approved_sale_cannot_be_deleted(self, sales, approved_sale, admin):
        with pytest.raises(StateConflictError) as exc:
            sales.delete(approved_sale.id, admin)
        assert exc.value.code == "ApprovedSaleCannotBeDeleted"
        assert sales.get(approved_sale.id).status == SaleStatus.APPROVED

    def test_accountant_cannot_delete(self, sales, make_property, sale_payload, accountant):
        sale = sales.create(sale_payload(make_property()), accountant)
        with pytest.raises(PermissionDeniedError):
            sales.delete(sale.id, accountant)
        assert sales.get(sale.id).status == SaleStatus.PENDING


# =============================================================================
# Payments
# =============================================================================


class TestRecordPayment:
    def test_partial_then_complete(self, sales, approved_sale, accountant, dispatcher):
        sales.record_payment(approved_sale.id, SalePaymentCreate(amount=Decimal("200000"), target_type=PaymentTarget.FACILITY), accountant)
        assert approved_sale.payment_status == PaymentStatus.PARTIAL
        assert approved_sale.facility_fee_paid == Decimal("200000")
        assert dispatcher.sent[-1].category.value == "PAYMENT_RECEIVED"

        sales.record_payment(approved_sale.id, SalePaymentCreate(amount=Decimal("5000000")), accountant)
        assert approved_sale.payment_status == PaymentStatus.PAID
        assert approved_sale.paid_amount == approved_sale.total_payable_amount
        assert approved_sale.property_price_paid == Decimal("5000000")
        assert dispatcher.sent[-1].category.value == "PAYMENT_COMPLETED"

    def test_payment_rows_and_history(self, sales, approved_sale, accountant):
        sales.record_payment(approved_sale.id, SalePaymentCreate(amount=Decimal("100"), reference="TRX-1"), accountant)

        rows = sales.payments(approved_sale.id)
        assert [(row.amount, row.reference) for row in rows] == [(Decimal("100"), "TRX-1")]
        last = sales.history(approved_sale.id)[-1].as_dict()
        assert last["amount"] == 100.0
        assert last["actionBy"] == "acct-1"

    def test_pending_sale_not_approved(self, sales, make_property, sale_payload, admin, accountant):
        prop = make_property()
        sale = sales.create(sale_payload(prop), admin)
        with pytest.raises(StateConflictError) as exc:
            sales.record_payment(sale.id, SalePaymentCreate(amount=Decimal("10")), accountant)
        assert exc.value.code == "SaleNotApproved"

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_amount_must_be_positive(self, sales, approved_sale, accountant, amount):
        with pytest.raises(ValidationError) as exc:
            sales.record_payment(approved_sale.id, SalePaymentCreate(amount=amount), accountant)
        assert exc.value.code == "InvalidAmount"

    def test_cannot_exceed_balance(self, sales, approved_sale, accountant):
        with pytest.raises(ValidationError) as exc:
            sales.record_payment(approved_sale.id, SalePaymentCreate(amount=Decimal("5200000.01")), accountant)
        assert exc.value.code == "PaymentExceedsBalance"
        assert approved_sale.paid_amount == Decimal("0")

    def test_settled_sale_has_zero_balance(self, sales, approved_sale, accountant):
        sales.record_payment(approved_sale.id, SalePaymentCreate(amount=Decimal("5200000")), accountant)
        with pytest.raises(StateConflictError) as exc:
            sales.record_payment(approved_sale.id, SalePaymentCreate(amount=Decimal("1")), accountant)
        assert exc.value.code == "SaleBalanceIsZero"

    def test_agent_cannot_record(self, sales, approved_sale, agent):
        with pytest.raises(PermissionDeniedError):
            sales.record_payment(approved_sale.id, SalePaymentCreate(amount=Decimal("1")), agent)
