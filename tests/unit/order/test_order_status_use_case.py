from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from dinein.application.use_cases.context import EMPTY_TRACE
from dinein.application.use_cases.order_status import (
    ChangeOrderStatus,
    GetOrder,
    ListSessionOrders,
)
from dinein.domain.common.errors import InvalidStateError, NotFoundError, ValidationError
from dinein.domain.common.ids import OrderId, SessionId
from fakes import Deps, add_to_cart, start_session, submit_order


def _submitted(deps: Deps) -> tuple[str, OrderId]:
    host = start_session(deps)
    session_id = host.session.sessionId
    add_to_cart(deps, session_id, host.joinToken)
    order = submit_order(deps, session_id, host.joinToken)
    return session_id, OrderId(order.orderId)


def test_kitchen_moves_order_to_completion(deps: Deps) -> None:
    _, order_id = _submitted(deps)
    use_case = ChangeOrderStatus(*deps.writer_args())

    statuses = []
    for action in ("start_preparing", "mark_ready", "mark_served", "complete"):
        deps.clock.advance(minutes=5)
        statuses.append(use_case.execute(order_id, action, EMPTY_TRACE).status)

    assert statuses == ["PREPARING", "READY", "SERVED", "COMPLETED"]
    order = GetOrder(deps.uow_factory).execute(order_id)
    assert order.readyAt is not None
    assert order.items[0].servedAt is not None
    assert deps.publisher.event_types()[-4:] == [
        "order.preparing",
        "order.ready",
        "order.served",
        "order.completed",
    ]


def test_repeated_clicks_are_noops(deps: Deps) -> None:
    _, order_id = _submitted(deps)
    use_case = ChangeOrderStatus(*deps.writer_args())
    use_case.execute(order_id, "start_preparing", EMPTY_TRACE)
    published = len(deps.publisher.calls)

    again = use_case.execute(order_id, "start_preparing", EMPTY_TRACE)
    skipped = use_case.execute(order_id, "mark_served", EMPTY_TRACE)

    assert again.status == "PREPARING"
    assert skipped.status == "PREPARING"
    assert len(deps.publisher.calls) == published


def test_unknown_action_and_order(deps: Deps) -> None:
    _, order_id = _submitted(deps)
    use_case = ChangeOrderStatus(*deps.writer_args())

    with pytest.raises(ValidationError):
        use_case.execute(order_id, "teleport", EMPTY_TRACE)
    with pytest.raises(NotFoundError):
        use_case.execute(OrderId("ord_404"), "confirm", EMPTY_TRACE)


def test_cancel_drops_order_from_session_total(deps: Deps) -> None:
    session_id, order_id = _submitted(deps)
    assert deps.store.sessions[SessionId(session_id)].total_amount.amount_cents == 1080

    cancelled = ChangeOrderStatus(*deps.writer_args()).execute(order_id, "cancel", EMPTY_TRACE)

    assert cancelled.status == "CANCELLED"
    assert deps.store.sessions[SessionId(session_id)].total_amount.amount_cents == 0


def test_cancel_after_preparation_started_is_invalid(deps: Deps) -> None:
    session_id, order_id = _submitted(deps)
    use_case = ChangeOrderStatus(*deps.writer_args())
    use_case.execute(order_id, "start_preparing", EMPTY_TRACE)

    with pytest.raises(InvalidStateError):
        use_case.execute(order_id, "cancel", EMPTY_TRACE)
    assert deps.store.sessions[SessionId(session_id)].total_amount.amount_cents == 1080


def test_refund_is_administrative_and_recalculates(deps: Deps) -> None:
    session_id, order_id = _submitted(deps)
    use_case = ChangeOrderStatus(*deps.writer_args())
    for action in ("start_preparing", "mark_ready", "mark_served"):
        use_case.execute(order_id, action, EMPTY_TRACE)

    refunded = use_case.execute(order_id, "refund", EMPTY_TRACE)

    assert refunded.status == "REFUNDED"
    assert deps.store.sessions[SessionId(session_id)].total_amount.amount_cents == 0
    assert use_case.execute(order_id, "confirm", EMPTY_TRACE).status == "REFUNDED"


def test_list_session_orders(deps: Deps) -> None:
    session_id, order_id = _submitted(deps)

    listed = ListSessionOrders(deps.uow_factory).execute(SessionId(session_id))

    assert [order.orderId for order in listed.orders] == [order_id]
    with pytest.raises(NotFoundError):
        ListSessionOrders(deps.uow_factory).execute(SessionId("ses_404"))
