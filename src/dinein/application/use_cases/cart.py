from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from dinein.application.dto.requests import AddCartItemRequest, UpdateCartItemRequest
from dinein.application.dto.responses import SessionResponse
from dinein.application.mappers.event_envelope import serialize_session_event
from dinein.application.mappers.session_mapper import to_session_response
from dinein.application.ports.clock import Clock, utc_now
from dinein.application.ports.publisher import EventPublisher
from dinein.application.ports.repositories import (
    MenuRepository,
    RestaurantRepository,
    UnitOfWork,
)
from dinein.application.use_cases.context import TraceContext
from dinein.application.use_cases.support import (
    UnitOfWorkFactory,
    load_settings,
    publish_event,
    require_session,
    run_with_retry,
)
from dinein.domain.cart.entities import CartItem
from dinein.domain.common.codes import new_id
from dinein.domain.common.errors import InvalidStateError, NotFoundError, OrderingError
from dinein.domain.common.ids import (
    MenuItemId,
    OrderItemId,
    RestaurantId,
    SessionId,
    VariationId,
)
from dinein.domain.menu.entities import MenuItem
from dinein.domain.order.entities import validate_quantity
from dinein.domain.session.entities import DiningSession, SessionGuest

logger = logging.getLogger(__name__)

CartChange = Callable[[UnitOfWork, DiningSession, SessionGuest, datetime], DiningSession]


class _CartCommand:
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

    def _mutate(
        self,
        session_id: SessionId,
        join_token: str,
        change: CartChange,
        action: str,
        trace_ctx: TraceContext,
    ) -> SessionResponse:
        def attempt() -> DiningSession:
            with self._uow_factory() as uow:
                session = require_session(uow, session_id)
                guest = session.require_guest(join_token)
                session.ensure_active(action)
                now = self._clock()
                policy = load_settings(
                    self._restaurant_repository, session.restaurant_id
                ).pricing_policy()
                updated = (
                    change(uow, session, guest, now)
                    .touch(guest.guest_id, now)
                    .recalculate_total(uow.orders.list_for_session(session_id), policy)
                )
                saved = uow.sessions.update(updated)
                uow.commit()
                return saved

        session = run_with_retry(attempt, action.replace(" ", "_"))
        now = self._clock()
        logger.info(
            "cart_updated",
            extra={
                "session_id": str(session.session_id),
                "action": action,
                "cart_items": len(session.cart.items),
            },
        )
        message = serialize_session_event(
            event_type="cart.updated",
            occurred_at=now,
            session=session,
            trace_id=trace_ctx.trace_id,
            request_id=trace_ctx.request_id,
            extra={"cartItems": len(session.cart.items)},
        )
        publish_event(self._publisher, str(session.restaurant_id), message)
        return to_session_response(session, now)

    @staticmethod
    def _ensure_in_cart(uow: UnitOfWork, session: DiningSession, item_id: OrderItemId) -> None:
        if session.cart.find(item_id) is not None:
            return
        if uow.orders.session_has_item(session.session_id, item_id):
            raise InvalidStateError(
                f"item {item_id} was already submitted to the kitchen",
                session_id=session.session_id,
                item_id=item_id,
            )
        raise NotFoundError(
            f"cart item {item_id} not found",
            session_id=session.session_id,
            item_id=item_id,
        )


class AddToCart(_CartCommand):
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        menu_repository: MenuRepository,
        restaurant_repository: RestaurantRepository,
        publisher: EventPublisher,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(uow_factory, restaurant_repository, publisher, clock)
        self._menu_repository = menu_repository

    def execute(
        self,
        session_id: SessionId,
        join_token: str,
        request_dto: AddCartItemRequest,
        trace_ctx: TraceContext,
    ) -> SessionResponse:
        def change(
            uow: UnitOfWork, session: DiningSession, guest: SessionGuest, now: datetime
        ) -> DiningSession:
            validate_quantity(request_dto.quantity)
            menu_item = self._menu_item(
                session.restaurant_id, MenuItemId(request_dto.menu_item_id)
            )
            variation_id = (
                VariationId(request_dto.variation_id) if request_dto.variation_id else None
            )
            name, unit_price = menu_item.quote(variation_id)
            item = CartItem(
                item_id=OrderItemId(new_id("itm")),
                guest_id=guest.guest_id,
                menu_item_id=menu_item.item_id,
                variation_id=variation_id,
                name=name,
                quantity=request_dto.quantity,
                unit_price=unit_price,
                notes=request_dto.notes,
                added_at=now,
                preparation_minutes=menu_item.preparation_time_minutes,
            )
            return session.add_cart_item(item)

        return self._mutate(session_id, join_token, change, "add to the cart", trace_ctx)

    def _menu_item(self, restaurant_id: RestaurantId, menu_item_id: MenuItemId) -> MenuItem:
        menu = self._menu_repository.get_menu_by_restaurant_id(restaurant_id)
        if menu is None:
            raise NotFoundError(
                f"menu not found for restaurant_id={restaurant_id}",
                restaurant_id=restaurant_id,
            )
        menu_item = menu.find_item(menu_item_id)
        if menu_item is None:
            raise OrderingError(
                f"menu item {menu_item_id} does not exist", menu_item_id=menu_item_id
            )
        if not menu_item.is_available:
            raise OrderingError(
                f"menu item {menu_item_id} is unavailable", menu_item_id=menu_item_id
            )
        return menu_item


class UpdateCartItem(_CartCommand):
    def execute(
        self,
        session_id: SessionId,
        join_token: str,
        item_id: OrderItemId,
        request_dto: UpdateCartItemRequest,
        trace_ctx: TraceContext,
    ) -> SessionResponse:
        def change(
            uow: UnitOfWork, session: DiningSession, guest: SessionGuest, now: datetime
        ) -> DiningSession:
            self._ensure_in_cart(uow, session, item_id)
            return session.update_cart_item(item_id, request_dto.quantity, request_dto.notes)

        return self._mutate(session_id, join_token, change, "update the cart", trace_ctx)


class RemoveFromCart(_CartCommand):
    def execute(
        self,
        session_id: SessionId,
        join_token: str,
        item_id: OrderItemId,
        trace_ctx: TraceContext,
    ) -> SessionResponse:
        def change(
            uow: UnitOfWork, session: DiningSession, guest: SessionGuest, now: datetime
        ) -> DiningSession:
            self._ensure_in_cart(uow, session, item_id)
            return session.remove_cart_item(item_id)

        return self._mutate(session_id, join_token, change, "remove from the cart", trace_ctx)
