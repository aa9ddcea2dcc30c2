"""Initial schema: users, organizers, events, ticket types, fee settings, ticket sales.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "organizers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("stripe_account_id", sa.String(255), nullable=True),
        sa.Column("stripe_charges_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_organizers_id", "organizers", ["id"])
    op.create_index("ix_organizers_user_id", "organizers", ["user_id"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("organizers.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    op.create_index("ix_events_event_date", "events", ["event_date"])

    op.create_table(
        "ticket_types",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("quantity_sold", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("min_quantity_per_purchase", sa.Integer(), nullable=True),
        sa.Column("max_quantity_per_purchase", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sales_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sales_end_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="check_ticket_price_non_negative"),
        sa.CheckConstraint("quantity >= 0", name="check_ticket_quantity_non_negative"),
        sa.CheckConstraint("quantity_sold >= 0", name="check_quantity_sold_non_negative"),
        # Last line of defence against overselling; the guarded increment should never hit it
        sa.CheckConstraint("quantity_sold <= quantity", name="check_quantity_sold_lte_quantity"),
    )
    op.create_index("ix_ticket_types_id", "ticket_types", ["id"])
    op.create_index("ix_ticket_types_event_id", "ticket_types", ["event_id"])

    op.create_table(
        "event_ticket_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False, unique=True),
        sa.Column("platform_fee_percentage", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_processing_fee_percentage", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_processing_fee_fixed", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("fee_payer", sa.String(20), nullable=False, server_default=sa.text("'buyer'")),
        *_timestamps(),
        sa.CheckConstraint("fee_payer IN ('buyer', 'organizer')", name="check_fee_payer"),
    )
    op.create_index("ix_event_ticket_settings_id", "event_ticket_settings", ["id"])

    op.create_table(
        "ticket_sales",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("ticket_type_id", sa.Integer(), sa.ForeignKey("ticket_types.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column("platform_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_processing_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("buyer_name", sa.String(255), nullable=False),
        sa.Column("buyer_email", sa.String(255), nullable=False),
        sa.Column("buyer_phone", sa.String(50), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("stripe_checkout_session_id", sa.String(255), nullable=True, unique=True),
        sa.Column("stripe_payment_intent_id", sa.String(255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="check_sale_quantity_positive"),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'completed', 'cancelled', 'failed', 'refunded')",
            name="check_sale_payment_status",
        ),
    )
    op.create_index("ix_ticket_sales_id", "ticket_sales", ["id"])
    op.create_index("ix_ticket_sales_user_id", "ticket_sales", ["user_id"])
    op.create_index("ix_ticket_sales_event_id", "ticket_sales", ["event_id"])
    op.create_index("ix_ticket_sales_ticket_type_id", "ticket_sales", ["ticket_type_id"])
    # Refund and failure webhooks locate the sale by payment intent
    op.create_index("ix_ticket_sales_stripe_payment_intent_id", "ticket_sales", ["stripe_payment_intent_id"])
    # Sweep and reporting queries filter on status
    op.create_index("ix_ticket_sales_payment_status", "ticket_sales", ["payment_status"])


def downgrade() -> None:
    op.drop_table("ticket_sales")
    op.drop_table("event_ticket_settings")
    op.drop_table("ticket_types")
    op.drop_table("events")
    op.drop_table("organizers")
    op.drop_table("users")
