from __future__ import annotations

from datetime import datetime, timezone

from prometheus_client import Counter, Gauge, Histogram

from dinein.domain.order.entities import Order, OrderStatus
from dinein.domain.session.entities import DiningSession

SESSIONS_STARTED_TOTAL = Counter(
    "dinein_sessions_started_total",
    "Total number of dining sessions started.",
    ["restaurant_id"],
)

SESSIONS_CLOSED_TOTAL = Counter(
    "dinein_sessions_closed_total",
    "Total number of dining sessions closed by final status.",
    ["restaurant_id", "status"],
)

SESSION_DURATION_SECONDS = Histogram(
    "dinein_session_duration_seconds",
    "Time between session start and close.",
    buckets=(600, 1800, 3600, 5400, 7200, 10800, 14400, 21600),
)

GUESTS_ADMITTED_TOTAL = Counter(
    "dinein_guests_admitted_total",
    "Total number of guests admitted to sessions.",
    ["restaurant_id"],
)

CAPACITY_REJECTIONS_TOTAL = Counter(
    "dinein_capacity_rejections_total",
    "Total number of guests turned away from full tables.",
    ["restaurant_id"],
)

ORDERS_SUBMITTED_TOTAL = Counter(
    "dinein_orders_submitted_total",
    "Total number of orders submitted from session carts.",
    ["restaurant_id", "order_type"],
)

ORDER_TRANSITION_TOTAL = Counter(
    "dinein_order_transition_total",
    "Total number of order lifecycle transitions.",
    ["from", "to"],
)

ORDER_TIME_TO_READY_SECONDS = Histogram(
    "dinein_order_time_to_ready_seconds",
    "Time between order submission and readiness.",
)

KITCHEN_QUEUE_SIZE = Gauge(
    "dinein_kitchen_queue_size",
    "Current number of orders returned by queue queries.",
    ["restaurant_id", "status"],
)

VOUCHER_REDEMPTIONS_TOTAL = Counter(
    "dinein_voucher_redemptions_total",
    "Total number of voucher redemptions by outcome.",
    ["restaurant_id", "outcome"],
)

OPTIMISTIC_LOCK_RETRIES_TOTAL = Counter(
    "dinein_optimistic_lock_retries_total",
    "Total number of writes retried after a version conflict.",
    ["operation"],
)

CODE_COLLISIONS_TOTAL = Counter(
    "dinein_code_collisions_total",
    "Total number of generated codes rejected as duplicates.",
    ["kind"],
)


def record_session_started(session: DiningSession) -> None:
    SESSIONS_STARTED_TOTAL.labels(restaurant_id=str(session.restaurant_id)).inc()


def record_session_closed(session: DiningSession, now: datetime | None = None) -> None:
    current = now or datetime.now(timezone.utc)
    SESSIONS_CLOSED_TOTAL.labels(
        restaurant_id=str(session.restaurant_id),
        status=session.status.value,
    ).inc()
    SESSION_DURATION_SECONDS.observe(max(session.duration(current).total_seconds(), 0.0))


def record_guest_admitted(restaurant_id: str) -> None:
    GUESTS_ADMITTED_TOTAL.labels(restaurant_id=restaurant_id).inc()


def record_capacity_rejection(restaurant_id: str) -> None:
    CAPACITY_REJECTIONS_TOTAL.labels(restaurant_id=restaurant_id).inc()


def record_order_submitted(order: Order) -> None:
    ORDERS_SUBMITTED_TOTAL.labels(
        restaurant_id=str(order.restaurant_id),
        order_type=order.order_type.value,
    ).inc()


def record_transition(from_status: OrderStatus, to_status: OrderStatus) -> None:
    ORDER_TRANSITION_TOTAL.labels(**{"from": from_status.value, "to": to_status.value}).inc()


def record_time_to_ready(order: Order, now: datetime | None = None) -> None:
    current = now or datetime.now(timezone.utc)
    ORDER_TIME_TO_READY_SECONDS.observe(max((current - order.created_at).total_seconds(), 0.0))


def record_kitchen_queue_size(restaurant_id: str, status: str, size: int) -> None:
    KITCHEN_QUEUE_SIZE.labels(restaurant_id=restaurant_id, status=status).set(size)


def record_voucher_redemption(restaurant_id: str, outcome: str) -> None:
    VOUCHER_REDEMPTIONS_TOTAL.labels(restaurant_id=restaurant_id, outcome=outcome).inc()


def record_optimistic_retry(operation: str) -> None:
    OPTIMISTIC_LOCK_RETRIES_TOTAL.labels(operation=operation).inc()


def record_code_collision(kind: str) -> None:
    CODE_COLLISIONS_TOTAL.labels(kind=kind).inc()
