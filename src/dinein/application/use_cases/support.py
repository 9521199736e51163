from __future__ import annotations

import logging
from typing import Callable, TypeVar

from dinein.application.metrics.lifecycle import record_optimistic_retry
from dinein.application.ports.publisher import EventPublisher
from dinein.application.ports.repositories import (
    OptimisticConcurrencyError,
    RestaurantRepository,
    UnitOfWork,
)
from dinein.domain.common.errors import ConflictError, NotFoundError
from dinein.domain.common.ids import OrderId, RestaurantId, SessionId
from dinein.domain.order.entities import Order
from dinein.domain.restaurant.entities import RestaurantSettings
from dinein.domain.session.entities import DiningSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_WRITE_ATTEMPTS = 3
MAX_CODE_ATTEMPTS = 5

UnitOfWorkFactory = Callable[[], UnitOfWork]


def run_with_retry(
    operation: Callable[[], T],
    name: str,
    attempts: int = MAX_WRITE_ATTEMPTS,
) -> T:
    """Run ``operation`` again from a fresh read when a versioned write loses a race."""
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except OptimisticConcurrencyError as exc:
            if attempt == attempts:
                logger.warning(
                    "optimistic_retry_exhausted",
                    extra={"operation": name, "attempts": attempts},
                )
                raise ConflictError(
                    f"{name} lost a concurrent update, retry the request",
                    operation=name,
                    attempts=attempts,
                ) from exc
            record_optimistic_retry(name)
    raise AssertionError("unreachable")


def publish_event(publisher: EventPublisher, restaurant_id: str, message: str) -> None:
    try:
        publisher.publish(channel=f"events:{restaurant_id}", message=message)
    except Exception:
        logger.exception("event_publish_failed", extra={"restaurant_id": restaurant_id})


def load_settings(
    restaurant_repository: RestaurantRepository, restaurant_id: RestaurantId
) -> RestaurantSettings:
    settings = restaurant_repository.get_settings(restaurant_id)
    if settings is None:
        raise NotFoundError(
            f"restaurant {restaurant_id} not found",
            restaurant_id=restaurant_id,
        )
    return settings


def require_session(uow: UnitOfWork, session_id: SessionId) -> DiningSession:
    session = uow.sessions.get(session_id)
    if session is None:
        raise NotFoundError(f"session {session_id} not found", session_id=session_id)
    return session


def require_session_for_token(uow: UnitOfWork, join_token: str) -> DiningSession:
    session = uow.sessions.get_by_join_token(join_token)
    if session is None:
        raise NotFoundError("no session found for join token")
    return session


def require_order(uow: UnitOfWork, order_id: OrderId) -> Order:
    order = uow.orders.get(order_id)
    if order is None:
        raise NotFoundError(f"order {order_id} not found", order_id=order_id)
    return order
