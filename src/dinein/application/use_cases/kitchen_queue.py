from __future__ import annotations

from dinein.application.dto.responses import KitchenQueueResponse
from dinein.application.mappers.order_mapper import to_order_response
from dinein.application.metrics.lifecycle import record_kitchen_queue_size
from dinein.application.ports.repositories import InvalidCursorError
from dinein.application.use_cases.support import UnitOfWorkFactory
from dinein.domain.common.errors import ValidationError
from dinein.domain.common.ids import RestaurantId
from dinein.domain.order.entities import OrderStatus

_STATUS_MAP: dict[str, OrderStatus | None] = {"ALL": None}
_STATUS_MAP.update({status.value: status for status in OrderStatus})


class KitchenQueue:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def execute(
        self,
        restaurant_id: RestaurantId,
        status: str = "ALL",
        limit: int = 50,
        cursor: str | None = None,
    ) -> KitchenQueueResponse:
        normalized_status = status.upper()
        if normalized_status not in _STATUS_MAP:
            raise ValidationError(f"invalid kitchen queue status: {status}", status=status)
        if limit < 1 or limit > 200:
            raise ValidationError("limit must be between 1 and 200", limit=limit)

        with self._uow_factory() as uow:
            try:
                orders, next_cursor = uow.orders.list_for_kitchen(
                    restaurant_id=restaurant_id,
                    status=_STATUS_MAP[normalized_status],
                    limit=limit,
                    cursor=cursor,
                )
            except InvalidCursorError as exc:
                raise ValidationError("invalid cursor", cursor=cursor) from exc

        record_kitchen_queue_size(
            restaurant_id=str(restaurant_id),
            status=normalized_status,
            size=len(orders),
        )

        return KitchenQueueResponse(
            orders=[to_order_response(order) for order in orders],
            nextCursor=next_cursor,
        )
