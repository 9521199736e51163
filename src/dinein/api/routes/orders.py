from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from dinein.api import dependencies as deps
from dinein.application.dto.responses import KitchenQueueResponse, OrderResponse
from dinein.application.use_cases.kitchen_queue import KitchenQueue
from dinein.application.use_cases.order_status import STAFF_ACTIONS, ChangeOrderStatus, GetOrder
from dinein.domain.common.ids import OrderId, RestaurantId

router = APIRouter()


def _change_order_status_use_case() -> ChangeOrderStatus:
    return ChangeOrderStatus(
        uow_factory=deps.unit_of_work,
        restaurant_repository=deps.restaurant_repository(),
        publisher=deps.event_publisher(),
    )


@router.get("/v1/orders/{order_id}", response_model=OrderResponse)
def get_order(order_id: str) -> OrderResponse:
    return GetOrder(uow_factory=deps.unit_of_work).execute(order_id=OrderId(order_id))


@router.post("/v1/orders/{order_id}/actions/{action}", response_model=OrderResponse)
def change_order_status(order_id: str, action: str) -> OrderResponse:
    # Path segments use dashes; actions are start-preparing, mark-ready, ...
    normalized = action.replace("-", "_")
    if normalized not in STAFF_ACTIONS:
        raise HTTPException(status_code=404, detail=f"unknown order action: {action}")
    return _change_order_status_use_case().execute(
        order_id=OrderId(order_id),
        action=normalized,
        trace_ctx=deps.current_trace_context(),
    )


@router.get(
    "/v1/restaurants/{restaurant_id}/kitchen/queue",
    response_model=KitchenQueueResponse,
)
def kitchen_queue(
    restaurant_id: str,
    status: str = Query(default="ALL"),
    limit: int = Query(default=50, ge=1, le=200),
    cursor: str | None = Query(default=None),
) -> KitchenQueueResponse:
    return KitchenQueue(uow_factory=deps.unit_of_work).execute(
        restaurant_id=RestaurantId(restaurant_id),
        status=status,
        limit=limit,
        cursor=cursor,
    )
