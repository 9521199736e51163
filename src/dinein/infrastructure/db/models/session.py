from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dinein.infrastructure.db.models.menu import Base

LIVE_STATUS_PREDICATE = "status IN ('ACTIVE', 'PAUSED', 'AWAITING_PAYMENT')"


class DiningSessionModel(Base):
    __tablename__ = "dining_sessions"
    __table_args__ = (
        UniqueConstraint("session_code", name="uq_dining_sessions_code"),
        Index(
            "uq_dining_sessions_live_table",
            "table_id",
            unique=True,
            postgresql_where=text(LIVE_STATUS_PREDICATE),
        ),
        Index("ix_dining_sessions_restaurant_started_at", "restaurant_id", "started_at"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    restaurant_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("restaurants.id", ondelete="CASCADE"),
        nullable=False,
    )
    table_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("tables.id", ondelete="CASCADE"),
        nullable=False,
    )
    session_code: Mapped[str] = mapped_column(String(6), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    host_name: Mapped[str] = mapped_column(String(100), nullable=False)
    host_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    special_requests: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    guest_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    tip_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    waiter_called: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    waiter_called_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    waiter_responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")

    guests: Mapped[list["SessionGuestModel"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionGuestModel.position",
    )
    cart_items: Mapped[list["CartItemModel"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="CartItemModel.position",
    )
    splits: Mapped[list["BillSplitModel"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="BillSplitModel.position",
    )


class SessionGuestModel(Base):
    __tablename__ = "session_guests"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    session_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("dining_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    is_host: Mapped[bool] = mapped_column(Boolean, nullable=False)
    join_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    session: Mapped[DiningSessionModel] = relationship(back_populates="guests")


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    session_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("dining_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    guest_id: Mapped[str] = mapped_column(String(50), nullable=False)
    menu_item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    variation_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    preparation_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    session: Mapped[DiningSessionModel] = relationship(back_populates="cart_items")


class BillSplitModel(Base):
    __tablename__ = "bill_splits"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    session_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("dining_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    guest_id: Mapped[str] = mapped_column(String(50), nullable=False)
    split_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    session: Mapped[DiningSessionModel] = relationship(back_populates="splits")
