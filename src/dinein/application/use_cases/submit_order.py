from __future__ import annotations

import logging

from dinein.application.dto.requests import SubmitOrderRequest
from dinein.application.dto.responses import OrderResponse
from dinein.application.mappers.event_envelope import serialize_order_event
from dinein.application.mappers.order_mapper import to_order_response
from dinein.application.metrics.lifecycle import record_code_collision, record_order_submitted
from dinein.application.ports.clock import Clock, utc_now
from dinein.application.ports.publisher import EventPublisher
from dinein.application.ports.repositories import (
    ORDER_NUMBER_CONSTRAINT,
    DuplicateKeyError,
    RestaurantRepository,
    UnitOfWork,
)
from dinein.application.use_cases.context import TraceContext
from dinein.application.use_cases.support import (
    MAX_CODE_ATTEMPTS,
    UnitOfWorkFactory,
    load_settings,
    publish_event,
    require_session,
    run_with_retry,
)
from dinein.domain.common.codes import new_id, new_order_number
from dinein.domain.common.errors import ConflictError, ValidationError
from dinein.domain.common.ids import OrderId, SessionId
from dinein.domain.order.entities import Order, OrderItem, OrderType, create_order
from dinein.domain.order.pricing import PricingPolicy
from dinein.domain.session.entities import DiningSession

logger = logging.getLogger(__name__)


def parse_order_type(value: str) -> OrderType:
    try:
        return OrderType(value.upper())
    except ValueError as exc:
        raise ValidationError(f"invalid order type: {value}", order_type=value) from exc


class SubmitOrder:
    """Promote the whole session cart into one confirmed order."""

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

    def execute(
        self,
        session_id: SessionId,
        join_token: str,
        request_dto: SubmitOrderRequest,
        trace_ctx: TraceContext,
    ) -> OrderResponse:
        order_type = parse_order_type(request_dto.order_type)

        def attempt() -> Order:
            with self._uow_factory() as uow:
                session = require_session(uow, session_id)
                guest = session.require_guest(join_token)
                cart_items, session = session.checkout_cart()
                policy = load_settings(
                    self._restaurant_repository, session.restaurant_id
                ).pricing_policy()
                now = self._clock()

                order = self._add_order(
                    uow,
                    session,
                    order_type,
                    [item.to_order_item() for item in cart_items],
                    policy,
                )
                updated = session.touch(guest.guest_id, now).recalculate_total(
                    uow.orders.list_for_session(session.session_id), policy
                )
                uow.sessions.update(updated)
                uow.commit()
                return order

        order = run_with_retry(attempt, "submit_order")
        record_order_submitted(order)
        logger.info(
            "order_submitted",
            extra={
                "restaurant_id": str(order.restaurant_id),
                "session_id": str(order.session_id),
                "order_id": str(order.order_id),
                "total_cents": order.total.amount_cents,
            },
        )
        message = serialize_order_event(
            event_type="order.submitted",
            occurred_at=order.created_at,
            order=order,
            trace_id=trace_ctx.trace_id,
            request_id=trace_ctx.request_id,
        )
        publish_event(self._publisher, str(order.restaurant_id), message)
        return to_order_response(order)

    def _add_order(
        self,
        uow: UnitOfWork,
        session: DiningSession,
        order_type: OrderType,
        items: list[OrderItem],
        policy: PricingPolicy,
    ) -> Order:
        now = self._clock()
        order_id = OrderId(new_id("ord"))
        for _ in range(MAX_CODE_ATTEMPTS):
            order = create_order(
                order_id=order_id,
                order_number=new_order_number(),
                session_id=session.session_id,
                restaurant_id=session.restaurant_id,
                table_id=session.table_id,
                order_type=order_type,
                items=items,
                policy=policy,
                now=now,
            ).confirm(now)
            try:
                uow.orders.add(order)
            except DuplicateKeyError as exc:
                if exc.constraint != ORDER_NUMBER_CONSTRAINT:
                    raise
                record_code_collision("order_number")
                continue
            return order

        raise ConflictError(
            "could not allocate a unique order number",
            session_id=session.session_id,
            attempts=MAX_CODE_ATTEMPTS,
        )
