"""create tables and dining sessions

Revision ID: 202610011000
Revises: 202610010700
Create Date: 2026-10-01 10:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "202610011000"
down_revision = "202610010700"
branch_labels = None
depends_on = None

LIVE_STATUS_PREDICATE = "status IN ('ACTIVE', 'PAUSED', 'AWAITING_PAYMENT')"


def upgrade() -> None:
    op.create_table(
        "tables",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("restaurant_id", sa.String(length=50), nullable=False),
        sa.Column("table_number", sa.String(length=20), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("current_session_id", sa.String(length=50), nullable=True),
        sa.Column("last_cleaned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("qr_code", sa.String(length=100), nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.CheckConstraint("capacity BETWEEN 1 AND 20", name="ck_tables_capacity"),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("restaurant_id", "table_number", name="uq_tables_restaurant_number"),
        sa.UniqueConstraint("qr_code", name="tables_qr_code_key"),
    )
    op.create_index("ix_tables_restaurant_id", "tables", ["restaurant_id"], unique=False)

    op.create_table(
        "dining_sessions",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("restaurant_id", sa.String(length=50), nullable=False),
        sa.Column("table_id", sa.String(length=50), nullable=False),
        sa.Column("session_code", sa.String(length=6), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("host_name", sa.String(length=100), nullable=False),
        sa.Column("host_phone", sa.String(length=30), nullable=True),
        sa.Column("special_requests", sa.String(length=1000), nullable=True),
        sa.Column("guest_count", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("tip_cents", sa.Integer(), nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("waiter_called", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("waiter_called_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("waiter_responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.CheckConstraint("total_cents >= 0", name="ck_dining_sessions_total"),
        sa.CheckConstraint("tip_cents >= 0", name="ck_dining_sessions_tip"),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["table_id"], ["tables.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_code", name="uq_dining_sessions_code"),
    )
    # One live session per table.
    op.create_index(
        "uq_dining_sessions_live_table",
        "dining_sessions",
        ["table_id"],
        unique=True,
        postgresql_where=sa.text(LIVE_STATUS_PREDICATE),
    )
    op.create_index(
        "ix_dining_sessions_restaurant_started_at",
        "dining_sessions",
        ["restaurant_id", "started_at"],
        unique=False,
    )

    op.create_table(
        "session_guests",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("session_id", sa.String(length=50), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("is_host", sa.Boolean(), nullable=False),
        sa.Column("join_token", sa.String(length=64), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["dining_sessions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("join_token", name="session_guests_join_token_key"),
    )
    op.create_index(
        "ix_session_guests_session_id", "session_guests", ["session_id"], unique=False
    )

    op.create_table(
        "cart_items",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("session_id", sa.String(length=50), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("guest_id", sa.String(length=50), nullable=False),
        sa.Column("menu_item_id", sa.String(length=50), nullable=False),
        sa.Column("variation_id", sa.String(length=50), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("preparation_minutes", sa.Integer(), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity BETWEEN 1 AND 50", name="ck_cart_items_quantity"),
        sa.ForeignKeyConstraint(["session_id"], ["dining_sessions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cart_items_session_id", "cart_items", ["session_id"], unique=False)

    op.create_table(
        "bill_splits",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("session_id", sa.String(length=50), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("guest_id", sa.String(length=50), nullable=False),
        sa.Column("split_type", sa.String(length=20), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("percentage", sa.Numeric(7, 4), nullable=True),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["session_id"], ["dining_sessions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bill_splits_session_id", "bill_splits", ["session_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_bill_splits_session_id", table_name="bill_splits")
    op.drop_table("bill_splits")
    op.drop_index("ix_cart_items_session_id", table_name="cart_items")
    op.drop_table("cart_items")
    op.drop_index("ix_session_guests_session_id", table_name="session_guests")
    op.drop_table("session_guests")
    op.drop_index("ix_dining_sessions_restaurant_started_at", table_name="dining_sessions")
    op.drop_index("uq_dining_sessions_live_table", table_name="dining_sessions")
    op.drop_table("dining_sessions")
    op.drop_index("ix_tables_restaurant_id", table_name="tables")
    op.drop_table("tables")
