from __future__ import annotations

from fastapi import APIRouter, Depends, status

from dinein.api import dependencies as deps
from dinein.application.dto.requests import (
    AddCartItemRequest,
    SubmitOrderRequest,
    UpdateCartItemRequest,
)
from dinein.application.dto.responses import OrderResponse, SessionResponse
from dinein.application.use_cases.cart import AddToCart, RemoveFromCart, UpdateCartItem
from dinein.application.use_cases.submit_order import SubmitOrder
from dinein.domain.common.ids import OrderItemId, SessionId

router = APIRouter()


def _add_to_cart_use_case() -> AddToCart:
    return AddToCart(
        uow_factory=deps.unit_of_work,
        menu_repository=deps.menu_repository(),
        restaurant_repository=deps.restaurant_repository(),
        publisher=deps.event_publisher(),
    )


def _update_cart_item_use_case() -> UpdateCartItem:
    return UpdateCartItem(
        uow_factory=deps.unit_of_work,
        restaurant_repository=deps.restaurant_repository(),
        publisher=deps.event_publisher(),
    )


def _remove_from_cart_use_case() -> RemoveFromCart:
    return RemoveFromCart(
        uow_factory=deps.unit_of_work,
        restaurant_repository=deps.restaurant_repository(),
        publisher=deps.event_publisher(),
    )


def _submit_order_use_case() -> SubmitOrder:
    return SubmitOrder(
        uow_factory=deps.unit_of_work,
        restaurant_repository=deps.restaurant_repository(),
        publisher=deps.event_publisher(),
    )


@router.post(
    "/v1/sessions/{session_id}/cart/items",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_cart_item(
    session_id: str,
    request_dto: AddCartItemRequest,
    join_token: str = Depends(deps.require_join_token),
) -> SessionResponse:
    return _add_to_cart_use_case().execute(
        session_id=SessionId(session_id),
        join_token=join_token,
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )


@router.patch("/v1/sessions/{session_id}/cart/items/{item_id}", response_model=SessionResponse)
def update_cart_item(
    session_id: str,
    item_id: str,
    request_dto: UpdateCartItemRequest,
    join_token: str = Depends(deps.require_join_token),
) -> SessionResponse:
    return _update_cart_item_use_case().execute(
        session_id=SessionId(session_id),
        join_token=join_token,
        item_id=OrderItemId(item_id),
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )


@router.delete("/v1/sessions/{session_id}/cart/items/{item_id}", response_model=SessionResponse)
def remove_cart_item(
    session_id: str,
    item_id: str,
    join_token: str = Depends(deps.require_join_token),
) -> SessionResponse:
    return _remove_from_cart_use_case().execute(
        session_id=SessionId(session_id),
        join_token=join_token,
        item_id=OrderItemId(item_id),
        trace_ctx=deps.current_trace_context(),
    )


@router.post(
    "/v1/sessions/{session_id}/orders",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_order(
    session_id: str,
    request_dto: SubmitOrderRequest,
    join_token: str = Depends(deps.require_join_token),
) -> OrderResponse:
    return _submit_order_use_case().execute(
        session_id=SessionId(session_id),
        join_token=join_token,
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )
