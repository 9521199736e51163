from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from dinein.application.dto.requests import UpdateCartItemRequest
from dinein.application.use_cases.cart import RemoveFromCart, UpdateCartItem
from dinein.application.use_cases.context import EMPTY_TRACE
from dinein.application.use_cases.session_lifecycle import PauseSession
from dinein.domain.common.errors import (
    InvalidStateError,
    NotFoundError,
    OrderingError,
    ValidationError,
)
from dinein.domain.common.ids import OrderItemId, SessionId
from fakes import (
    Deps,
    FakeRestaurantRepository,
    add_to_cart,
    join_table,
    make_settings,
    start_session,
    submit_order,
)


@pytest.fixture
def untaxed(deps: Deps) -> Deps:
    deps.restaurant_repository = FakeRestaurantRepository(make_settings(tax_rate="0"))
    return deps


def test_cart_round_trip(untaxed: Deps) -> None:
    host = start_session(untaxed)
    session_id = host.session.sessionId

    add_to_cart(untaxed, session_id, host.joinToken, "itm_001", quantity=2)
    response = add_to_cart(untaxed, session_id, host.joinToken, "itm_003")

    assert [item.lineTotal.amountCents for item in response.cart] == [2000, 550]
    assert response.totalAmount.amountCents == 2550
    assert untaxed.publisher.event_types()[-1] == "cart.updated"


def test_cart_total_includes_tax(deps: Deps) -> None:
    host = start_session(deps)

    response = add_to_cart(deps, host.session.sessionId, host.joinToken, quantity=2)

    assert response.totalAmount.amountCents == 2160


def test_variation_price_is_captured(deps: Deps) -> None:
    host = start_session(deps)

    response = add_to_cart(
        deps, host.session.sessionId, host.joinToken, "itm_001", variation_id="var_001"
    )

    (item,) = response.cart
    assert item.name == "Margherita (Large)"
    assert item.unitPrice.amountCents == 1400
    assert item.variationId == "var_001"
    assert item.guestId == host.guestId


@pytest.mark.parametrize(
    ("menu_item_id", "variation_id"),
    [("itm_404", None), ("itm_004", None), ("itm_001", "var_002"), ("itm_001", "var_999")],
)
def test_unorderable_items_are_rejected(
    deps: Deps, menu_item_id: str, variation_id: str | None
) -> None:
    host = start_session(deps)

    with pytest.raises(OrderingError):
        add_to_cart(
            deps,
            host.session.sessionId,
            host.joinToken,
            menu_item_id,
            variation_id=variation_id,
        )


@pytest.mark.parametrize("quantity", [0, 51])
def test_quantity_outside_bounds_is_rejected(deps: Deps, quantity: int) -> None:
    host = start_session(deps)

    with pytest.raises(ValidationError):
        add_to_cart(deps, host.session.sessionId, host.joinToken, quantity=quantity)


def test_cart_needs_a_guest_token_of_that_session(deps: Deps) -> None:
    host = start_session(deps)
    other = start_session(deps, table_id="tbl_002", host="Bo")

    with pytest.raises(NotFoundError):
        add_to_cart(deps, host.session.sessionId, other.joinToken)


def test_cart_is_frozen_while_session_is_paused(deps: Deps) -> None:
    host = start_session(deps)
    session_id = host.session.sessionId
    PauseSession(*deps.writer_args()).execute(SessionId(session_id), EMPTY_TRACE)

    with pytest.raises(InvalidStateError):
        add_to_cart(deps, session_id, host.joinToken)


def test_guests_share_one_cart(deps: Deps) -> None:
    host = join_table(deps, "Ana")
    guest = join_table(deps, "Ben")
    session_id = host.session.sessionId

    add_to_cart(deps, session_id, host.joinToken)
    response = add_to_cart(deps, session_id, guest.joinToken, "itm_003")

    assert {item.guestId for item in response.cart} == {host.guestId, guest.guestId}


def test_update_and_remove_cart_items(untaxed: Deps) -> None:
    host = start_session(untaxed)
    session_id = SessionId(host.session.sessionId)
    added = add_to_cart(untaxed, session_id, host.joinToken)
    item_id = OrderItemId(added.cart[0].itemId)

    updated = UpdateCartItem(*untaxed.writer_args()).execute(
        session_id,
        host.joinToken,
        item_id,
        UpdateCartItemRequest(quantity=3, notes="extra basil"),
        EMPTY_TRACE,
    )
    assert updated.cart[0].quantity == 3
    assert updated.cart[0].notes == "extra basil"
    assert updated.totalAmount.amountCents == 3000

    removed = RemoveFromCart(*untaxed.writer_args()).execute(
        session_id, host.joinToken, item_id, EMPTY_TRACE
    )
    assert removed.cart == []
    assert removed.totalAmount.amountCents == 0


def test_submitted_items_can_no_longer_be_edited(deps: Deps) -> None:
    host = start_session(deps)
    session_id = SessionId(host.session.sessionId)
    added = add_to_cart(deps, session_id, host.joinToken)
    item_id = OrderItemId(added.cart[0].itemId)
    submit_order(deps, session_id, host.joinToken)

    with pytest.raises(InvalidStateError):
        RemoveFromCart(*deps.writer_args()).execute(
            session_id, host.joinToken, item_id, EMPTY_TRACE
        )
    with pytest.raises(NotFoundError):
        RemoveFromCart(*deps.writer_args()).execute(
            session_id, host.joinToken, OrderItemId("itm_unknown"), EMPTY_TRACE
        )
