from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from dinein.application.dto.responses import OrderListResponse, OrderResponse
from dinein.application.mappers.event_envelope import serialize_order_event
from dinein.application.mappers.order_mapper import to_order_response
from dinein.application.metrics.lifecycle import record_time_to_ready, record_transition
from dinein.application.ports.clock import Clock, utc_now
from dinein.application.ports.publisher import EventPublisher
from dinein.application.ports.repositories import RestaurantRepository
from dinein.application.use_cases.context import TraceContext
from dinein.application.use_cases.support import (
    UnitOfWorkFactory,
    load_settings,
    publish_event,
    require_order,
    require_session,
    run_with_retry,
)
from dinein.domain.common.errors import ValidationError
from dinein.domain.common.ids import OrderId, SessionId
from dinein.domain.order.entities import Order, OrderStatus

logger = logging.getLogger(__name__)

_STAFF_ACTIONS: dict[str, Callable[[Order, datetime], Order]] = {
    "confirm": lambda order, now: order.confirm(now),
    "start_preparing": lambda order, now: order.start_preparing(),
    "mark_ready": lambda order, now: order.mark_ready(now),
    "mark_served": lambda order, now: order.mark_served(now),
    "complete": lambda order, now: order.complete(now),
    "cancel": lambda order, now: order.cancel(),
    "refund": lambda order, now: order.refund(),
}

# Actions that change what the session owes.
_BILLING_ACTIONS = frozenset({"cancel", "refund"})

STAFF_ACTIONS = frozenset(_STAFF_ACTIONS)


class ChangeOrderStatus:
    """Kitchen and floor transitions. Forward moves that do not apply are no-ops."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        restaurant_repository: RestaurantRepository,
        publisher: EventPublisher,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._restaurant_repository = restaurant_repository
        self._publisher = publisher
        self._clock = clock

    def execute(self, order_id: OrderId, action: str, trace_ctx: TraceContext) -> OrderResponse:
        transition = _STAFF_ACTIONS.get(action)
        if transition is None:
            raise ValidationError(f"unknown order action: {action}", action=action)

        def attempt() -> tuple[Order, Order]:
            with self._uow_factory() as uow:
                order = require_order(uow, order_id)
                updated = transition(order, self._clock())
                if updated == order:
                    return order, order
                saved = uow.orders.update(updated)
                if action in _BILLING_ACTIONS:
                    session = require_session(uow, order.session_id)
                    policy = load_settings(
                        self._restaurant_repository, order.restaurant_id
                    ).pricing_policy()
                    uow.sessions.update(
                        session.recalculate_total(
                            uow.orders.list_for_session(session.session_id), policy
                        )
                    )
                uow.commit()
                return order, saved

        before, after = run_with_retry(attempt, f"order_{action}")
        if after.status == before.status:
            return to_order_response(after)

        now = self._clock()
        record_transition(before.status, after.status)
        if after.status == OrderStatus.READY:
            record_time_to_ready(after, now)
        logger.info(
            "order_status_changed",
            extra={
                "order_id": str(after.order_id),
                "from_status": before.status.value,
                "to_status": after.status.value,
            },
        )
        message = serialize_order_event(
            event_type=f"order.{after.status.value.lower()}",
            occurred_at=now,
            order=after,
            trace_id=trace_ctx.trace_id,
            request_id=trace_ctx.request_id,
        )
        publish_event(self._publisher, str(after.restaurant_id), message)
        return to_order_response(after)


class GetOrder:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def execute(self, order_id: OrderId) -> OrderResponse:
        with self._uow_factory() as uow:
            order = require_order(uow, order_id)
        return to_order_response(order)


class ListSessionOrders:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def execute(self, session_id: SessionId) -> OrderListResponse:
        with self._uow_factory() as uow:
            require_session(uow, session_id)
            orders = uow.orders.list_for_session(session_id)
        return OrderListResponse(orders=[to_order_response(order) for order in orders])
