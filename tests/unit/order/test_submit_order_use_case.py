from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

import dinein.application.use_cases.submit_order as submit_order_module
from dinein.application.dto.requests import SubmitOrderRequest
from dinein.application.use_cases.context import EMPTY_TRACE
from dinein.application.use_cases.submit_order import SubmitOrder
from dinein.domain.common.errors import ConflictError, EmptyCartError, ValidationError
from dinein.domain.common.ids import SessionId
from fakes import Deps, add_to_cart, join_table, start_session, submit_order


def test_submit_promotes_the_whole_cart_into_one_confirmed_order(deps: Deps) -> None:
    host = join_table(deps, "Ana")
    guest = join_table(deps, "Ben")
    session_id = host.session.sessionId
    add_to_cart(deps, session_id, host.joinToken, "itm_001", quantity=2)
    cart = add_to_cart(deps, session_id, guest.joinToken, "itm_003").cart

    order = submit_order(deps, session_id, guest.joinToken)

    assert order.status == "CONFIRMED"
    assert order.orderType == "DINE_IN"
    assert [item.itemId for item in order.items] == [item.itemId for item in cart]
    assert all(item.status == "CONFIRMED" for item in order.items)
    assert order.subtotal.amountCents == 2550
    assert order.tax.amountCents == 204
    assert order.total.amountCents == 2754
    assert order.estimatedReadyAt == deps.clock.now + timedelta(minutes=15)
    assert len(order.orderNumber) == 8

    session = deps.store.sessions[SessionId(session_id)]
    assert session.cart.is_empty()
    assert session.total_amount.amount_cents == 2754
    assert deps.publisher.event_types()[-1] == "order.submitted"


def test_submit_with_empty_cart_fails(deps: Deps) -> None:
    host = start_session(deps)

    with pytest.raises(EmptyCartError):
        submit_order(deps, host.session.sessionId, host.joinToken)
    assert deps.store.orders == {}


def test_submit_rejects_unknown_order_type(deps: Deps) -> None:
    host = start_session(deps)
    add_to_cart(deps, host.session.sessionId, host.joinToken)

    with pytest.raises(ValidationError):
        SubmitOrder(*deps.writer_args()).execute(
            SessionId(host.session.sessionId),
            host.joinToken,
            SubmitOrderRequest(order_type="DRIVE_THRU"),
            EMPTY_TRACE,
        )


def test_delivery_order_carries_delivery_fee(deps: Deps) -> None:
    host = start_session(deps)
    add_to_cart(deps, host.session.sessionId, host.joinToken)

    order = SubmitOrder(*deps.writer_args()).execute(
        SessionId(host.session.sessionId),
        host.joinToken,
        SubmitOrderRequest(order_type="delivery"),
        EMPTY_TRACE,
    )

    assert order.orderType == "DELIVERY"
    assert order.deliveryFee.amountCents == 499
    assert order.total.amountCents == 1000 + 80 + 499


def test_session_total_sums_several_orders(deps: Deps) -> None:
    host = start_session(deps)
    session_id = host.session.sessionId
    add_to_cart(deps, session_id, host.joinToken)
    submit_order(deps, session_id, host.joinToken)
    add_to_cart(deps, session_id, host.joinToken, "itm_003")
    submit_order(deps, session_id, host.joinToken)

    session = deps.store.sessions[SessionId(session_id)]

    assert session.total_amount.amount_cents == 1080 + 594
    assert len(deps.store.orders) == 2


def test_order_number_collision_is_retried(deps: Deps, monkeypatch) -> None:
    host = start_session(deps)
    session_id = host.session.sessionId
    numbers = iter(["00000001", "00000001", "00000002"])
    monkeypatch.setattr(submit_order_module, "new_order_number", lambda: next(numbers))
    add_to_cart(deps, session_id, host.joinToken)
    first = submit_order(deps, session_id, host.joinToken)
    add_to_cart(deps, session_id, host.joinToken)

    second = submit_order(deps, session_id, host.joinToken)

    assert first.orderNumber == "00000001"
    assert second.orderNumber == "00000002"


def test_order_number_collisions_give_up(deps: Deps, monkeypatch) -> None:
    host = start_session(deps)
    session_id = host.session.sessionId
    monkeypatch.setattr(submit_order_module, "new_order_number", lambda: "00000001")
    add_to_cart(deps, session_id, host.joinToken)
    submit_order(deps, session_id, host.joinToken)
    add_to_cart(deps, session_id, host.joinToken)

    with pytest.raises(ConflictError):
        submit_order(deps, session_id, host.joinToken)
    assert len(deps.store.sessions[SessionId(session_id)].cart.items) == 1
