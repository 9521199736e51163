from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from dinein.application.dto.requests import (
    ApplyVoucherRequest,
    ComputeSplitsRequest,
    PreviewDiscountRequest,
    RecordSplitPaymentRequest,
)
from dinein.application.use_cases.billing import (
    ApplyVoucher,
    ComputeSplits,
    PreviewDiscount,
    RecordSplitPayment,
)
from dinein.application.use_cases.context import EMPTY_TRACE
from dinein.application.use_cases.order_status import ChangeOrderStatus
from dinein.application.use_cases.session_lifecycle import RequestPayment
from dinein.domain.billing.vouchers import VoucherStatus, VoucherType
from dinein.domain.common.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dinein.domain.common.ids import BillSplitId, OrderId, RestaurantId, SessionId
from dinein.domain.order.entities import OrderStatus, PaymentStatus
from fakes import (
    Deps,
    FakeVoucherRepository,
    add_to_cart,
    join_table,
    make_voucher,
    submit_order,
)

RESTAURANT = RestaurantId("rst_001")


def _preview(deps: Deps, code: str, amount_cents: int):
    return PreviewDiscount(deps.uow_factory, deps.clock).execute(
        RESTAURANT, PreviewDiscountRequest(code=code, amount_cents=amount_cents)
    )


def _apply(deps: Deps, order_id: str, code: str):
    return ApplyVoucher(*deps.writer_args()).execute(
        OrderId(order_id), ApplyVoucherRequest(code=code), EMPTY_TRACE
    )


def _dinner(deps: Deps, quantity: int = 5) -> tuple[str, str, str, str]:
    """Ana orders ``quantity`` pizzas, Ben a salad. Returns session, order and both tokens."""
    host = join_table(deps, "Ana")
    guest = join_table(deps, "Ben")
    session_id = host.session.sessionId
    add_to_cart(deps, session_id, host.joinToken, "itm_001", quantity=quantity)
    add_to_cart(deps, session_id, guest.joinToken, "itm_003")
    order = submit_order(deps, session_id, host.joinToken)
    return session_id, order.orderId, host.joinToken, guest.joinToken


def _await_payment(deps: Deps, session_id: str) -> None:
    RequestPayment(*deps.writer_args()).execute(SessionId(session_id), EMPTY_TRACE)


def _split(deps: Deps, session_id: str, **request: object):
    return ComputeSplits(deps.uow_factory, deps.publisher, deps.clock).execute(
        SessionId(session_id), ComputeSplitsRequest(**request), EMPTY_TRACE
    )


def _pay(deps: Deps, session_id: str, split_id: str, outcome: str = "PAID"):
    return RecordSplitPayment(deps.uow_factory, deps.publisher, deps.clock).execute(
        SessionId(session_id),
        BillSplitId(split_id),
        RecordSplitPaymentRequest(outcome=outcome, payment_method="card"),
        EMPTY_TRACE,
    )


def test_preview_percentage_voucher(deps: Deps) -> None:
    deps.store.add_voucher(make_voucher())
    deps.store.add_voucher(make_voucher("CAPPED", maximum_cents=500))

    assert _preview(deps, "welcome20", 5000).discount.amountCents == 1000
    assert _preview(deps, "CAPPED", 5000).discount.amountCents == 500


def test_preview_reports_invalid_voucher_without_discount(deps: Deps) -> None:
    deps.store.add_voucher(make_voucher("BIGSPEND", minimum_cents=10000))

    preview = _preview(deps, "BIGSPEND", 5000)

    assert not preview.valid
    assert preview.discount.amountCents == 0


def test_preview_unknown_code_is_not_found(deps: Deps) -> None:
    with pytest.raises(NotFoundError):
        _preview(deps, "NOPE", 5000)


def test_apply_voucher_discounts_order_and_session(deps: Deps) -> None:
    deps.store.add_voucher(make_voucher())
    session_id, order_id, _, _ = _dinner(deps)

    order = _apply(deps, order_id, "WELCOME20")

    # gross 5550 + 444 tax = 5994; 20% = 1198.8
    assert order.discount.amountCents == 1199
    assert order.total.amountCents == 5994 - 1199
    assert order.voucherCode == "WELCOME20"
    assert deps.store.sessions[SessionId(session_id)].total_amount.amount_cents == 4795
    assert deps.store.vouchers["vch_welcome20"].used_count == 1
    assert deps.publisher.event_types()[-1] == "order.discounted"


def test_voucher_cannot_be_applied_twice_to_one_order(deps: Deps) -> None:
    deps.store.add_voucher(make_voucher())
    _, order_id, _, _ = _dinner(deps)
    _apply(deps, order_id, "WELCOME20")

    with pytest.raises(InvalidStateError):
        _apply(deps, order_id, "WELCOME20")
    assert deps.store.vouchers["vch_welcome20"].used_count == 1


def test_voucher_rejection_carries_reason(deps: Deps) -> None:
    deps.store.add_voucher(make_voucher("BIGSPEND", minimum_cents=100000))
    _, order_id, _, _ = _dinner(deps)

    with pytest.raises(InvalidStateError) as exc_info:
        _apply(deps, order_id, "BIGSPEND")

    assert exc_info.value.details["reason"] == "MINIMUM_NOT_MET"


def test_single_use_voucher_is_used_up(deps: Deps) -> None:
    deps.store.add_voucher(
        make_voucher(
            "FIVEOFF",
            voucher_type=VoucherType.FIXED_AMOUNT,
            discount_value="5.00",
            usage_limit=1,
        )
    )
    _, first_order, host_token, _ = _dinner(deps)
    _apply(deps, first_order, "FIVEOFF")
    session_id = deps.store.orders[first_order].session_id
    add_to_cart(deps, session_id, host_token)
    second_order = submit_order(deps, session_id, host_token).orderId

    with pytest.raises(InvalidStateError) as exc_info:
        _apply(deps, second_order, "FIVEOFF")

    assert exc_info.value.details["reason"] == VoucherStatus.USED_UP.value
    assert deps.store.vouchers["vch_fiveoff"].status == VoucherStatus.USED_UP


def test_lost_redemption_race_is_a_conflict(deps: Deps, monkeypatch) -> None:
    deps.store.add_voucher(make_voucher(usage_limit=5))
    _, order_id, _, _ = _dinner(deps)

    monkeypatch.setattr(FakeVoucherRepository, "redeem", lambda self, voucher_id: None)

    with pytest.raises(ConflictError) as exc_info:
        _apply(deps, order_id, "WELCOME20")

    assert exc_info.value.details["reason"] == "USED_UP"
    assert deps.store.orders[order_id].voucher_code is None


def test_cancelled_order_cannot_take_a_voucher(deps: Deps) -> None:
    deps.store.add_voucher(make_voucher())
    _, order_id, _, _ = _dinner(deps)
    ChangeOrderStatus(*deps.writer_args()).execute(OrderId(order_id), "cancel", EMPTY_TRACE)

    with pytest.raises(InvalidStateError):
        _apply(deps, order_id, "WELCOME20")
    assert deps.store.vouchers["vch_welcome20"].used_count == 0


def test_splits_need_awaiting_payment(deps: Deps) -> None:
    session_id, _, _, _ = _dinner(deps)

    with pytest.raises(InvalidStateError):
        _split(deps, session_id, split_type="EQUAL")


def test_equal_split_sums_to_session_total(deps: Deps) -> None:
    session_id, _, _, _ = _dinner(deps, quantity=1)
    _await_payment(deps, session_id)

    response = _split(deps, session_id, split_type="equal")

    # 15.50 + 8% = 16.74
    assert response.total.amountCents == 1674
    assert [split.amount.amountCents for split in response.splits] == [837, 837]
    assert deps.publisher.event_types()[-1] == "bill.split"


def test_item_based_split_follows_who_ordered_what(deps: Deps) -> None:
    session_id, _, _, _ = _dinner(deps, quantity=5)
    _await_payment(deps, session_id)

    response = _split(deps, session_id, split_type="ITEM_BASED")

    # 50.00 pizzas and 5.50 salad, total 59.94 with tax.
    amounts = [split.amount.amountCents for split in response.splits]
    assert sum(amounts) == 5994
    assert amounts == [5400, 594]


def test_percentage_and_custom_splits_validate_input(deps: Deps) -> None:
    session_id, _, _, _ = _dinner(deps, quantity=1)
    _await_payment(deps, session_id)
    guest_ids = [guest.guest_id for guest in deps.store.sessions[SessionId(session_id)].guests]

    pct = _split(
        deps,
        session_id,
        split_type="PERCENTAGE",
        percentages={guest_ids[0]: Decimal("75"), guest_ids[1]: Decimal("25")},
    )
    assert [split.amount.amountCents for split in pct.splits] == [1256, 418]
    assert pct.splits[0].percentage == "75"

    with pytest.raises(ValidationError):
        _split(deps, session_id, split_type="CUSTOM", amounts_cents={guest_ids[0]: 1000})
    custom = _split(
        deps,
        session_id,
        split_type="CUSTOM",
        amounts_cents={guest_ids[0]: 1000, guest_ids[1]: 674},
    )
    assert [split.amount.amountCents for split in custom.splits] == [1000, 674]
    with pytest.raises(ValidationError):
        _split(deps, session_id, split_type="BY_MOOD")


def test_paying_every_split_marks_session_and_orders_paid(deps: Deps) -> None:
    session_id, order_id, _, _ = _dinner(deps, quantity=1)
    _await_payment(deps, session_id)
    splits = _split(deps, session_id, split_type="EQUAL").splits

    partial = _pay(deps, session_id, splits[0].splitId)
    assert partial.paymentStatus == "PARTIALLY_PAID"
    assert deps.store.orders[order_id].payment_status == PaymentStatus.PENDING

    failed = _pay(deps, session_id, splits[1].splitId, outcome="FAILED")
    assert failed.paymentStatus == "PARTIALLY_PAID"

    paid = _pay(deps, session_id, splits[1].splitId)
    assert paid.paymentStatus == "PAID"
    assert deps.store.orders[order_id].payment_status == PaymentStatus.PAID
    assert deps.store.orders[order_id].status == OrderStatus.CONFIRMED
    assert deps.store.sessions[SessionId(session_id)].status.value == "AWAITING_PAYMENT"


def test_recorded_payments_lock_the_splits(deps: Deps) -> None:
    session_id, _, _, _ = _dinner(deps, quantity=1)
    _await_payment(deps, session_id)
    splits = _split(deps, session_id, split_type="EQUAL").splits
    _pay(deps, session_id, splits[0].splitId)

    with pytest.raises(InvalidStateError):
        _split(deps, session_id, split_type="EQUAL")
    with pytest.raises(NotFoundError):
        _pay(deps, session_id, "spl_404")
    with pytest.raises(ValidationError):
        _pay(deps, session_id, splits[1].splitId, outcome="MAYBE")


def _partially_paid(deps: Deps) -> tuple[str, str, list]:
    session_id, order_id, _, _ = _dinner(deps)
    _await_payment(deps, session_id)
    splits = _split(deps, session_id, split_type="EQUAL").splits
    _pay(deps, session_id, splits[0].splitId)
    return session_id, order_id, splits


def test_voucher_after_a_payment_is_refused(deps: Deps) -> None:
    deps.store.add_voucher(make_voucher())
    session_id, order_id, _ = _partially_paid(deps)

    with pytest.raises(InvalidStateError) as exc_info:
        _apply(deps, order_id, "WELCOME20")

    assert exc_info.value.details["reason"] == "PAYMENTS_RECORDED"
    assert deps.store.vouchers["vch_welcome20"].used_count == 0
    assert deps.store.orders[order_id].voucher_code is None
    assert deps.store.sessions[SessionId(session_id)].total_amount.amount_cents == 5994


@pytest.mark.parametrize("action", ["cancel", "refund"])
def test_order_changes_after_a_payment_are_refused(deps: Deps, action: str) -> None:
    session_id, order_id, _ = _partially_paid(deps)

    with pytest.raises(InvalidStateError) as exc_info:
        ChangeOrderStatus(*deps.writer_args()).execute(OrderId(order_id), action, EMPTY_TRACE)

    assert exc_info.value.details["reason"] == "PAYMENTS_RECORDED"
    assert deps.store.orders[order_id].status == OrderStatus.CONFIRMED
    assert deps.store.sessions[SessionId(session_id)].total_amount.amount_cents == 5994


def test_fully_paid_order_cannot_be_cancelled(deps: Deps) -> None:
    session_id, order_id, splits = _partially_paid(deps)
    _pay(deps, session_id, splits[1].splitId)

    with pytest.raises(InvalidStateError) as exc_info:
        ChangeOrderStatus(*deps.writer_args()).execute(OrderId(order_id), "cancel", EMPTY_TRACE)

    assert exc_info.value.details["reason"] == "ORDER_PAID"
    session = deps.store.sessions[SessionId(session_id)]
    assert session.payment_status == PaymentStatus.PAID
    assert session.total_amount.amount_cents == sum(s.amount.amount_cents for s in session.splits)


def test_paid_split_cannot_be_marked_failed(deps: Deps) -> None:
    session_id, order_id, splits = _partially_paid(deps)
    _pay(deps, session_id, splits[1].splitId)

    with pytest.raises(InvalidStateError) as exc_info:
        _pay(deps, session_id, splits[0].splitId, outcome="FAILED")

    assert exc_info.value.details["reason"] == "SPLIT_ALREADY_PAID"
    assert deps.store.sessions[SessionId(session_id)].payment_status == PaymentStatus.PAID
    assert deps.store.orders[order_id].payment_status == PaymentStatus.PAID
    assert _pay(deps, session_id, splits[0].splitId).paymentStatus == "PAID"
