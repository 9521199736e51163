from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable

from dinein.domain.billing.splits import (
    BillSplit,
    SplitPaymentStatus,
    aggregate_payment_status,
)
from dinein.domain.cart.entities import Cart, CartItem
from dinein.domain.common.errors import (
    CapacityExceededError,
    EmptyCartError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dinein.domain.common.ids import (
    BillSplitId,
    GuestId,
    OrderItemId,
    RestaurantId,
    SessionId,
    TableId,
)
from dinein.domain.common.money import Money, sum_money
from dinein.domain.order.entities import Order, PaymentStatus
from dinein.domain.order.pricing import PricingPolicy, calculate_totals

RECENT_ACTIVITY_WINDOW = timedelta(minutes=30)


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED})
LIVE_STATUSES = frozenset(
    {SessionStatus.ACTIVE, SessionStatus.PAUSED, SessionStatus.AWAITING_PAYMENT}
)


@dataclass(frozen=True)
class SessionGuest:
    guest_id: GuestId
    name: str
    phone: str | None
    is_host: bool
    join_token: str
    joined_at: datetime
    last_activity_at: datetime

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValidationError("guest name must be non-empty", guest_id=self.guest_id)

    def is_recently_active(self, now: datetime) -> bool:
        return now - self.last_activity_at <= RECENT_ACTIVITY_WINDOW


@dataclass(frozen=True)
class DiningSession:
    session_id: SessionId
    restaurant_id: RestaurantId
    table_id: TableId
    session_code: str
    status: SessionStatus
    currency: str
    started_at: datetime
    host_name: str
    host_phone: str | None = None
    special_requests: str | None = None
    guests: list[SessionGuest] = field(default_factory=list)
    cart: Cart = field(default_factory=Cart)
    splits: list[BillSplit] = field(default_factory=list)
    total_amount: Money | None = None
    tip_amount: Money | None = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    waiter_called: bool = False
    waiter_called_at: datetime | None = None
    waiter_responded_at: datetime | None = None
    ended_at: datetime | None = None
    version: int = 1

    def __post_init__(self) -> None:
        if self.total_amount is None:
            object.__setattr__(self, "total_amount", Money.zero(self.currency))
        if self.tip_amount is None:
            object.__setattr__(self, "tip_amount", Money.zero(self.currency))
        if sum(1 for guest in self.guests if guest.is_host) > 1:
            raise ValueError("a session has at most one host")

    @classmethod
    def start(
        cls,
        *,
        session_id: SessionId,
        restaurant_id: RestaurantId,
        table_id: TableId,
        session_code: str,
        currency: str,
        host: SessionGuest,
        special_requests: str | None,
        now: datetime,
    ) -> DiningSession:
        if not host.is_host:
            raise ValueError("the first guest of a session must be the host")
        return cls(
            session_id=session_id,
            restaurant_id=restaurant_id,
            table_id=table_id,
            session_code=session_code,
            status=SessionStatus.ACTIVE,
            currency=currency,
            started_at=now,
            host_name=host.name,
            host_phone=host.phone,
            special_requests=special_requests,
            guests=[host],
        )

    @property
    def guest_count(self) -> int:
        return len(self.guests)

    @property
    def host(self) -> SessionGuest | None:
        for guest in self.guests:
            if guest.is_host:
                return guest
        return None

    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def duration(self, now: datetime) -> timedelta:
        return (self.ended_at or now) - self.started_at

    # Guests

    def admit_guest(self, guest: SessionGuest, capacity: int) -> DiningSession:
        self.ensure_active("admit a guest")
        if guest.is_host:
            raise ValueError("only the session starter can be the host")
        if self.guest_count >= capacity:
            raise CapacityExceededError(
                f"table {self.table_id} is full",
                session_id=self.session_id,
                table_id=self.table_id,
                guest_count=self.guest_count,
                capacity=capacity,
            )
        return replace(self, guests=[*self.guests, guest])

    def find_guest_by_token(self, join_token: str) -> SessionGuest | None:
        for guest in self.guests:
            if guest.join_token == join_token:
                return guest
        return None

    def require_guest(self, join_token: str) -> SessionGuest:
        guest = self.find_guest_by_token(join_token)
        if guest is None:
            raise NotFoundError("guest not found for join token", session_id=self.session_id)
        return guest

    def touch(self, guest_id: GuestId, now: datetime) -> DiningSession:
        return replace(
            self,
            guests=[
                replace(guest, last_activity_at=now) if guest.guest_id == guest_id else guest
                for guest in self.guests
            ],
        )

    def remove_guest(self, guest_id: GuestId) -> DiningSession:
        """Drop a departing guest together with whatever they left in the cart."""
        self.ensure_active("leave")
        guest = next((g for g in self.guests if g.guest_id == guest_id), None)
        if guest is None:
            raise NotFoundError(
                f"guest {guest_id} not found", session_id=self.session_id, guest_id=guest_id
            )
        if guest.is_host:
            raise InvalidStateError(
                "the host cannot leave the session",
                session_id=self.session_id,
                guest_id=guest_id,
                reason="HOST_CANNOT_LEAVE",
            )
        cart = Cart(items=[item for item in self.cart.items if item.guest_id != guest_id])
        return replace(
            self,
            guests=[g for g in self.guests if g.guest_id != guest_id],
            cart=cart,
        )

    # Lifecycle

    def pause(self) -> DiningSession:
        if self.status != SessionStatus.ACTIVE:
            return self
        return replace(self, status=SessionStatus.PAUSED)

    def resume(self) -> DiningSession:
        if self.status != SessionStatus.PAUSED:
            return self
        return replace(self, status=SessionStatus.ACTIVE)

    def request_payment(self, orders: Iterable[Order], policy: PricingPolicy) -> DiningSession:
        if self.status not in (SessionStatus.ACTIVE, SessionStatus.PAUSED):
            raise InvalidStateError(
                f"cannot request payment for session in status={self.status.value}",
                session_id=self.session_id,
                status=self.status.value,
            )
        recalculated = self.recalculate_total(orders, policy)
        return replace(recalculated, status=SessionStatus.AWAITING_PAYMENT)

    def complete(self, now: datetime) -> DiningSession:
        self._ensure_not_terminal("complete")
        return replace(self, status=SessionStatus.COMPLETED, ended_at=now)

    def cancel(self, now: datetime) -> DiningSession:
        self._ensure_not_terminal("cancel")
        return replace(self, status=SessionStatus.CANCELLED, ended_at=now)

    def call_waiter(self, now: datetime) -> DiningSession:
        self._ensure_not_terminal("call the waiter")
        return replace(
            self,
            waiter_called=True,
            waiter_called_at=now,
            waiter_responded_at=None,
        )

    def waiter_responded(self, now: datetime) -> DiningSession:
        if not self.waiter_called:
            return self
        return replace(self, waiter_called=False, waiter_responded_at=now)

    # Money

    def set_tip(
        self, tip: Money, orders: Iterable[Order], policy: PricingPolicy
    ) -> DiningSession:
        self._ensure_not_terminal("set a tip")
        if tip.currency != self.currency:
            raise ValidationError(
                "tip currency must match the session currency",
                session_id=self.session_id,
                currency=tip.currency,
            )
        self._ensure_no_recorded_payments("change the tip")
        return replace(self, tip_amount=tip).recalculate_total(orders, policy)

    def cart_total(self, policy: PricingPolicy) -> Money:
        if self.cart.is_empty():
            return Money.zero(self.currency)
        return calculate_totals((item.line_total for item in self.cart.items), policy).total

    def recalculate_total(self, orders: Iterable[Order], policy: PricingPolicy) -> DiningSession:
        """Billable order totals, plus the cart priced as a pending order, plus the tip."""
        orders_total = sum_money(
            (
                order.total
                for order in orders
                if order.session_id == self.session_id and order.is_billable()
            ),
            self.currency,
        )
        total = orders_total + self.cart_total(policy) + self.tip_amount
        if total == self.total_amount:
            return self
        # Recorded payments pin the bill; unpaid splits are recomputed on demand.
        self._ensure_no_recorded_payments("change the bill")
        return replace(self, total_amount=total, splits=[])

    # Cart

    def add_cart_item(self, item: CartItem) -> DiningSession:
        self.ensure_active("add to the cart")
        if item.unit_price.currency != self.currency:
            raise ValidationError(
                "item currency must match the session currency",
                session_id=self.session_id,
                currency=item.unit_price.currency,
            )
        return replace(self, cart=self.cart.add(item))

    def update_cart_item(
        self, item_id: OrderItemId, quantity: int, notes: str | None
    ) -> DiningSession:
        self.ensure_active("update the cart")
        return replace(self, cart=self.cart.update(item_id, quantity, notes))

    def remove_cart_item(self, item_id: OrderItemId) -> DiningSession:
        self.ensure_active("remove from the cart")
        return replace(self, cart=self.cart.remove(item_id))

    def checkout_cart(self) -> tuple[list[CartItem], DiningSession]:
        """Hand over every cart item for a new order and empty the cart."""
        self.ensure_active("submit an order")
        if self.cart.is_empty():
            raise EmptyCartError(
                f"session {self.session_id} has nothing in the cart",
                session_id=self.session_id,
            )
        return list(self.cart.items), replace(self, cart=self.cart.cleared())

    # Splits

    def replace_splits(self, splits: list[BillSplit]) -> DiningSession:
        if self.status != SessionStatus.AWAITING_PAYMENT:
            raise InvalidStateError(
                f"bill can only be split while awaiting payment, status={self.status.value}",
                session_id=self.session_id,
                status=self.status.value,
            )
        self._ensure_no_recorded_payments("split the bill again")
        return replace(self, splits=list(splits), payment_status=PaymentStatus.PENDING)

    def record_split_payment(
        self,
        split_id: BillSplitId,
        outcome: SplitPaymentStatus,
        payment_method: str | None,
        now: datetime,
    ) -> DiningSession:
        self._ensure_not_terminal("record a payment")
        split = next((s for s in self.splits if s.split_id == split_id), None)
        if split is None:
            raise NotFoundError(
                f"bill split {split_id} not found",
                session_id=self.session_id,
                split_id=split_id,
            )
        recorded = split.record(outcome, payment_method, now)
        splits = [recorded if s.split_id == split_id else s for s in self.splits]
        return replace(self, splits=splits, payment_status=aggregate_payment_status(splits))

    def _ensure_no_recorded_payments(self, action: str) -> None:
        if any(split.has_payment() for split in self.splits):
            raise InvalidStateError(
                f"cannot {action} after payments were recorded",
                session_id=self.session_id,
                payment_status=self.payment_status.value,
                reason="PAYMENTS_RECORDED",
            )

    def ensure_active(self, action: str) -> None:
        if self.status != SessionStatus.ACTIVE:
            raise InvalidStateError(
                f"cannot {action} while session is {self.status.value}",
                session_id=self.session_id,
                status=self.status.value,
            )

    def _ensure_not_terminal(self, action: str) -> None:
        if self.is_terminal():
            raise InvalidStateError(
                f"cannot {action} on a {self.status.value} session",
                session_id=self.session_id,
                status=self.status.value,
            )


def average_order_value(orders: Iterable[Order], currency: str) -> Money:
    billable = [order for order in orders if order.is_billable()]
    if not billable:
        return Money.zero(currency)
    total = sum_money((order.total for order in billable), currency)
    average = (Decimal(total.amount_cents) / len(billable)).quantize(
        Decimal(1), rounding=ROUND_HALF_UP
    )
    return Money(amount_cents=int(average), currency=currency)
