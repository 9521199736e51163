from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Sequence

from dinein.domain.common.errors import InvalidStateError, ValidationError
from dinein.domain.common.ids import (
    GuestId,
    MenuItemId,
    OrderId,
    OrderItemId,
    RestaurantId,
    SessionId,
    TableId,
    VariationId,
)
from dinein.domain.common.money import Money
from dinein.domain.menu.entities import DEFAULT_PREPARATION_MINUTES
from dinein.domain.order.pricing import OrderTotals, PricingPolicy, calculate_totals

MIN_ITEM_QUANTITY = 1
MAX_ITEM_QUANTITY = 50


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    SERVED = "SERVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class OrderType(str, Enum):
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"
    DELIVERY = "DELIVERY"
    PRE_ORDER = "PRE_ORDER"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


NOT_BILLABLE_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


def validate_quantity(quantity: int) -> None:
    if quantity < MIN_ITEM_QUANTITY or quantity > MAX_ITEM_QUANTITY:
        raise ValidationError(
            f"quantity must be between {MIN_ITEM_QUANTITY} and {MAX_ITEM_QUANTITY}",
            quantity=quantity,
        )


@dataclass(frozen=True)
class OrderItem:
    item_id: OrderItemId
    menu_item_id: MenuItemId
    variation_id: VariationId | None
    guest_id: GuestId | None
    name: str
    quantity: int
    unit_price: Money
    line_total: Money
    notes: str | None
    status: OrderStatus = OrderStatus.PENDING
    preparation_minutes: int = DEFAULT_PREPARATION_MINUTES
    prepared_at: datetime | None = None
    served_at: datetime | None = None

    def __post_init__(self) -> None:
        validate_quantity(self.quantity)
        if self.unit_price.currency != self.line_total.currency:
            raise ValueError("line_total currency must match unit_price currency")
        if self.line_total != self.unit_price.times(self.quantity):
            raise ValueError("line_total must equal unit_price * quantity")


@dataclass(frozen=True)
class Order:
    order_id: OrderId
    session_id: SessionId
    restaurant_id: RestaurantId
    table_id: TableId
    order_number: str
    order_type: OrderType
    status: OrderStatus
    items: list[OrderItem]
    totals: OrderTotals
    created_at: datetime
    payment_status: PaymentStatus = PaymentStatus.PENDING
    estimated_ready_at: datetime | None = None
    ready_at: datetime | None = None
    served_at: datetime | None = None
    voucher_code: str | None = None
    version: int = 1

    def __post_init__(self) -> None:
        if not self.items:
            raise ValueError("order must contain at least one item")
        currency = self.totals.total.currency
        if any(item.line_total.currency != currency for item in self.items):
            raise ValueError("order item currency must match order currency")
        expected_subtotal = sum(item.line_total.amount_cents for item in self.items)
        if self.totals.subtotal.amount_cents != expected_subtotal:
            raise ValueError("order subtotal must equal sum of item totals")

    @property
    def total(self) -> Money:
        return self.totals.total

    def is_billable(self) -> bool:
        return self.status not in NOT_BILLABLE_STATUSES

    def can_be_cancelled(self) -> bool:
        return self.status in (OrderStatus.PENDING, OrderStatus.CONFIRMED)

    # Staff transitions below are tolerant: when the precondition does not hold
    # the order is returned unchanged so duplicated clicks are harmless.

    def confirm(self, now: datetime) -> Order:
        if self.status != OrderStatus.PENDING:
            return self
        slowest = max(item.preparation_minutes for item in self.items)
        return self._moved_to(
            OrderStatus.CONFIRMED,
            estimated_ready_at=now + timedelta(minutes=slowest),
        )

    def start_preparing(self) -> Order:
        if self.status != OrderStatus.CONFIRMED:
            return self
        return self._moved_to(OrderStatus.PREPARING)

    def mark_ready(self, now: datetime) -> Order:
        if self.status != OrderStatus.PREPARING:
            return self
        return self._moved_to(OrderStatus.READY, ready_at=now, item_prepared_at=now)

    def mark_served(self, now: datetime) -> Order:
        if self.status != OrderStatus.READY:
            return self
        return self._moved_to(OrderStatus.SERVED, served_at=now, item_served_at=now)

    def complete(self, now: datetime) -> Order:
        if self.status not in (OrderStatus.READY, OrderStatus.SERVED):
            return self
        served_at = self.served_at or now
        return self._moved_to(OrderStatus.COMPLETED, served_at=served_at)

    def cancel(self) -> Order:
        if self.payment_status == PaymentStatus.PAID:
            raise InvalidStateError(
                f"order {self.order_id} is already paid",
                order_id=self.order_id,
                status=self.status.value,
                reason="ORDER_PAID",
            )
        if not self.can_be_cancelled():
            raise InvalidStateError(
                f"order {self.order_id} cannot be cancelled from status={self.status.value}",
                order_id=self.order_id,
                status=self.status.value,
            )
        return self._moved_to(OrderStatus.CANCELLED)

    def refund(self) -> Order:
        if self.status == OrderStatus.REFUNDED:
            return self
        return replace(self, status=OrderStatus.REFUNDED)

    def apply_discount(self, discount: Money, voucher_code: str, policy: PricingPolicy) -> Order:
        if not self.is_billable():
            raise InvalidStateError(
                f"cannot discount order {self.order_id} in status={self.status.value}",
                order_id=self.order_id,
                status=self.status.value,
            )
        if self.voucher_code is not None:
            raise InvalidStateError(
                f"order {self.order_id} already has voucher {self.voucher_code}",
                order_id=self.order_id,
                voucher_code=self.voucher_code,
            )
        totals = calculate_totals(
            (item.line_total for item in self.items),
            policy,
            is_delivery=self.order_type == OrderType.DELIVERY,
            discount=discount,
        )
        return replace(self, totals=totals, voucher_code=voucher_code)

    def mark_paid(self) -> Order:
        return replace(self, payment_status=PaymentStatus.PAID)

    def _moved_to(
        self,
        status: OrderStatus,
        *,
        estimated_ready_at: datetime | None = None,
        ready_at: datetime | None = None,
        served_at: datetime | None = None,
        item_prepared_at: datetime | None = None,
        item_served_at: datetime | None = None,
    ) -> Order:
        items = [
            item
            if item.status == OrderStatus.CANCELLED
            else replace(
                item,
                status=status,
                prepared_at=item_prepared_at or item.prepared_at,
                served_at=item_served_at or item.served_at,
            )
            for item in self.items
        ]
        return replace(
            self,
            status=status,
            items=items,
            estimated_ready_at=estimated_ready_at or self.estimated_ready_at,
            ready_at=ready_at or self.ready_at,
            served_at=served_at or self.served_at,
        )


def create_order(
    order_id: OrderId,
    order_number: str,
    session_id: SessionId,
    restaurant_id: RestaurantId,
    table_id: TableId,
    order_type: OrderType,
    items: Sequence[OrderItem],
    policy: PricingPolicy,
    now: datetime,
) -> Order:
    if not items:
        raise ValueError("order must contain at least one item")

    totals = calculate_totals(
        (item.line_total for item in items),
        policy,
        is_delivery=order_type == OrderType.DELIVERY,
    )
    return Order(
        order_id=order_id,
        session_id=session_id,
        restaurant_id=restaurant_id,
        table_id=table_id,
        order_number=order_number,
        order_type=order_type,
        status=OrderStatus.PENDING,
        items=list(items),
        totals=totals,
        created_at=now,
    )
