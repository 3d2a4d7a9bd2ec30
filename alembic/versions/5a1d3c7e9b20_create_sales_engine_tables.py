"""create sales engine tables

Revision ID: 5a1d3c7e9b20
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5a1d3c7e9b20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

FEE_FIELDS = (
    "facility_fee",
    "water_fee",
    "electricity_fee",
    "supervision_fee",
    "authority_fee",
    "other_fee",
    "infrastructure_cost",
    "agency_fee",
)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _money(name):
    return sa.Column(name, sa.Numeric(14, 2), nullable=False, server_default="0")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("property_type", sa.String(length=10), nullable=False),
        sa.Column("block_number", sa.String(), nullable=False),
        sa.Column("unit_number", sa.String(), nullable=False),
        sa.Column("estate_name", sa.String(), nullable=True),
        sa.Column("price", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="AVAILABLE"),
        sa.Column("reservation_id", sa.Integer(), nullable=True),
        sa.Column("sale_id", sa.Integer(), nullable=True),
        sa.Column("reserved_by_id", sa.String(), nullable=True),
        sa.Column("client_id", sa.String(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_properties_id", "properties", ["id"])
    op.create_index("ix_properties_property_type", "properties", ["property_type"])
    op.create_index("ix_properties_status", "properties", ["status"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("property_type", sa.String(length=10), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email_address", sa.String(), nullable=True),
        sa.Column("phone_number", sa.String(), nullable=True),
        sa.Column("client_id", sa.String(), nullable=True),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("property_location", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_by_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reservations_id", "reservations", ["id"])
    op.create_index("ix_reservations_property_id", "reservations", ["property_id"])
    op.create_index("ix_reservations_email_address", "reservations", ["email_address"])
    op.create_index("ix_reservations_phone_number", "reservations", ["phone_number"])
    op.create_index("ix_reservations_client_id", "reservations", ["client_id"])
    op.create_index("ix_reservations_code", "reservations", ["code"])
    op.create_index(
        "uq_reservations_active_property",
        "reservations",
        ["property_id", "property_type"],
        unique=True,
        postgresql_where=sa.text("status <> 'DECLINED'"),
    )

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("property_type", sa.String(length=10), nullable=False),
        sa.Column("reservation_id", sa.Integer(), nullable=True),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("transaction_ref", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email_address", sa.String(), nullable=True),
        sa.Column("phone_number", sa.String(), nullable=True),
        sa.Column("client_id", sa.String(), nullable=True),
        sa.Column("client_type", sa.String(length=20), nullable=False),
        sa.Column("company_name", sa.String(), nullable=True),
        sa.Column("residential_address", sa.String(), nullable=True),
        sa.Column("agent_id", sa.String(), nullable=True),
        sa.Column("agent_name", sa.String(), nullable=True),
        _money("property_price"),
        _money("property_price_paid"),
        *[_money(name) for name in FEE_FIELDS],
        *[_money(f"{name}_paid") for name in FEE_FIELDS],
        _money("discount"),
        _money("paid_amount"),
        _money("total_payable_amount"),
        _money("registration_fees"),
        sa.Column("registration_fees_status", sa.String(length=10), nullable=False),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("additional_information", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("offer_status", sa.String(length=20), nullable=False),
        sa.Column("offer_id", sa.Integer(), nullable=True),
        sa.Column("allocation_status", sa.String(length=20), nullable=False),
        sa.Column("allocation_id", sa.Integer(), nullable=True),
        sa.Column("payment_plan_id", sa.Integer(), nullable=True),
        sa.Column("created_by_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"]),
        sa.ForeignKeyConstraint(["reservation_id"], ["reservations.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sales_id", "sales", ["id"])
    op.create_index("ix_sales_property_id", "sales", ["property_id"])
    op.create_index("ix_sales_reservation_id", "sales", ["reservation_id"])
    op.create_index("ix_sales_code", "sales", ["code"])
    op.create_index("ix_sales_email_address", "sales", ["email_address"])
    op.create_index("ix_sales_phone_number", "sales", ["phone_number"])
    op.create_index("ix_sales_client_id", "sales", ["client_id"])
    op.create_index("ix_sales_status", "sales", ["status"])
    op.create_index(
        "uq_sales_active_property",
        "sales",
        ["property_id", "property_type"],
        unique=True,
        postgresql_where=sa.text("status <> 'DECLINED'"),
    )

    op.create_table(
        "payment_plans",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.String(), nullable=True),
        sa.Column("plan_name", sa.String(), nullable=True),
        sa.Column("frequency", sa.String(length=20), nullable=False),
        sa.Column("custom_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("amount_per_cycle", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_cycles", sa.Integer(), nullable=False),
        sa.Column("cycles_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("next_payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("remark", sa.String(), nullable=True),
        sa.Column("created_by_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payment_plans_id", "payment_plans", ["id"])
    op.create_index("ix_payment_plans_sale_id", "payment_plans", ["sale_id"])
    op.create_index("ix_payment_plans_client_id", "payment_plans", ["client_id"])
    op.create_index("ix_payment_plans_status", "payment_plans", ["status"])

    op.create_table(
        "sale_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("payment_plan_id", sa.Integer(), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("target_type", sa.String(length=20), nullable=False),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("reference", sa.String(), nullable=True),
        sa.Column("narration", sa.String(), nullable=True),
        sa.Column("created_by_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["payment_plan_id"], ["payment_plans.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sale_payments_id", "sale_payments", ["id"])
    op.create_index("ix_sale_payments_sale_id", "sale_payments", ["sale_id"])
    op.create_index("ix_sale_payments_payment_plan_id", "sale_payments", ["payment_plan_id"])

    for table, number_field, length in (
        ("sale_offers", "offer_number", 20),
        ("sale_allocations", "allocation_number", 20),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("sale_id", sa.Integer(), nullable=False),
            sa.Column("house_id", sa.Integer(), nullable=True),
            sa.Column("plot_id", sa.Integer(), nullable=True),
            sa.Column(number_field, sa.String(length=8), nullable=False),
            sa.Column("file_url", sa.String(), nullable=False),
            sa.Column("remark", sa.String(), nullable=True),
            sa.Column("status", sa.String(length=length), nullable=False),
            sa.Column("created_by_id", sa.String(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("sale_id"),
            sa.UniqueConstraint(number_field),
        )
        op.create_index(f"ix_{table}_id", table, ["id"])

    op.create_table(
        "update_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("action_type", sa.String(length=10), nullable=False),
        sa.Column("changes", sa.JSON(), nullable=False),
        sa.Column("action_by", sa.String(), nullable=True),
        sa.Column("action_by_user", sa.String(), nullable=True),
        sa.Column("action_date", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entity_type", "entity_id", "sequence", name="uq_update_history_entity_sequence"),
    )
    op.create_index("ix_update_history_id", "update_history", ["id"])
    op.create_index("ix_update_history_entity_type", "update_history", ["entity_type"])
    op.create_index("ix_update_history_entity_id", "update_history", ["entity_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("update_history")
    op.drop_table("sale_allocations")
    op.drop_table("sale_offers")
    op.drop_table("sale_payments")
    op.drop_table("payment_plans")
    op.drop_table("sales")
    op.drop_table("reservations")
    op.drop_table("properties")
