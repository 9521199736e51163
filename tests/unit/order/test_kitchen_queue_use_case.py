from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from dinein.application.use_cases.context import EMPTY_TRACE
from dinein.application.use_cases.kitchen_queue import KitchenQueue
from dinein.application.use_cases.order_status import ChangeOrderStatus
from dinein.domain.common.errors import ValidationError
from dinein.domain.common.ids import OrderId, RestaurantId
from fakes import Deps, add_to_cart, start_session, submit_order

RESTAURANT = RestaurantId("rst_001")


def _three_orders(deps: Deps) -> list[str]:
    host = start_session(deps)
    order_ids = []
    for _ in range(3):
        add_to_cart(deps, host.session.sessionId, host.joinToken)
        order_ids.append(submit_order(deps, host.session.sessionId, host.joinToken).orderId)
        deps.clock.advance(minutes=1)
    return order_ids


def test_kitchen_queue_lists_oldest_first_with_paging(deps: Deps) -> None:
    order_ids = _three_orders(deps)
    use_case = KitchenQueue(deps.uow_factory)

    first_page = use_case.execute(RESTAURANT, limit=2)
    second_page = use_case.execute(RESTAURANT, limit=2, cursor=first_page.nextCursor)

    assert [order.orderId for order in first_page.orders] == order_ids[:2]
    assert first_page.nextCursor is not None
    assert [order.orderId for order in second_page.orders] == order_ids[2:]
    assert second_page.nextCursor is None


def test_kitchen_queue_filters_by_status(deps: Deps) -> None:
    order_ids = _three_orders(deps)
    ChangeOrderStatus(*deps.writer_args()).execute(
        OrderId(order_ids[1]), "start_preparing", EMPTY_TRACE
    )

    preparing = KitchenQueue(deps.uow_factory).execute(RESTAURANT, status="preparing")
    confirmed = KitchenQueue(deps.uow_factory).execute(RESTAURANT, status="CONFIRMED")

    assert [order.orderId for order in preparing.orders] == [order_ids[1]]
    assert len(confirmed.orders) == 2


@pytest.mark.parametrize(
    ("kwargs", "detail"),
    [
        ({"status": "COOKING"}, "status"),
        ({"limit": 0}, "limit"),
        ({"limit": 201}, "limit"),
        ({"cursor": "bad"}, "cursor"),
    ],
)
def test_kitchen_queue_rejects_bad_queries(deps: Deps, kwargs: dict, detail: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        KitchenQueue(deps.uow_factory).execute(RESTAURANT, **kwargs)

    assert detail in exc_info.value.details
