from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import TypeVar

from dinein.application.dto.requests import (
    ApplyVoucherRequest,
    ComputeSplitsRequest,
    PreviewDiscountRequest,
    RecordSplitPaymentRequest,
)
from dinein.application.dto.responses import (
    BillSplitsResponse,
    DiscountPreviewResponse,
    OrderResponse,
)
from dinein.application.mappers.event_envelope import (
    serialize_order_event,
    serialize_session_event,
)
from dinein.application.mappers.money_mapper import to_money_response
from dinein.application.mappers.order_mapper import to_order_response
from dinein.application.mappers.session_mapper import to_split_response
from dinein.application.metrics.lifecycle import record_voucher_redemption
from dinein.application.ports.clock import Clock, utc_now
from dinein.application.ports.publisher import EventPublisher
from dinein.application.ports.repositories import RestaurantRepository, UnitOfWork
from dinein.application.use_cases.context import TraceContext
from dinein.application.use_cases.support import (
    UnitOfWorkFactory,
    load_settings,
    publish_event,
    require_order,
    require_session,
    run_with_retry,
)
from dinein.domain.billing.splits import SplitPaymentStatus, SplitType, build_splits
from dinein.domain.billing.vouchers import Voucher
from dinein.domain.common.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dinein.domain.common.ids import BillSplitId, GuestId, OrderId, RestaurantId, SessionId
from dinein.domain.common.money import Money
from dinein.domain.order.entities import Order, PaymentStatus
from dinein.domain.session.entities import DiningSession

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def _require_voucher(uow: UnitOfWork, restaurant_id: RestaurantId, code: str) -> Voucher:
    voucher = uow.vouchers.get_by_code(restaurant_id, code.strip().upper())
    if voucher is None:
        raise NotFoundError(f"voucher {code} not found", code=code)
    return voucher


def _splits_response(session: DiningSession) -> BillSplitsResponse:
    return BillSplitsResponse(
        sessionId=str(session.session_id),
        paymentStatus=session.payment_status.value,
        total=to_money_response(session.total_amount),
        splits=[to_split_response(split) for split in session.splits],
    )


def _parse_enum(enum_cls: type[E], value: str, field: str) -> E:
    try:
        return enum_cls(value.upper())
    except ValueError as exc:
        raise ValidationError(f"invalid {field}: {value}", **{field: value}) from exc


class PreviewDiscount:
    """What a voucher would take off an amount. Nothing is redeemed."""

    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    def execute(
        self, restaurant_id: RestaurantId, request_dto: PreviewDiscountRequest
    ) -> DiscountPreviewResponse:
        with self._uow_factory() as uow:
            voucher = _require_voucher(uow, restaurant_id, request_dto.code)

        amount = Money(amount_cents=request_dto.amount_cents, currency=voucher.currency)
        now = self._clock()
        return DiscountPreviewResponse(
            code=voucher.code,
            valid=voucher.is_valid_for_order(amount, now),
            amount=to_money_response(amount),
            discount=to_money_response(voucher.calculate_discount(amount, now)),
        )


class ApplyVoucher:
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
        self, order_id: OrderId, request_dto: ApplyVoucherRequest, trace_ctx: TraceContext
    ) -> OrderResponse:
        def attempt() -> Order:
            with self._uow_factory() as uow:
                order = require_order(uow, order_id)
                voucher = _require_voucher(uow, order.restaurant_id, request_dto.code)
                now = self._clock()
                gross = order.totals.gross
                reason = voucher.rejection_reason(gross, now)
                if reason is not None:
                    record_voucher_redemption(str(order.restaurant_id), "rejected")
                    raise InvalidStateError(
                        f"voucher {voucher.code} cannot be applied to order {order.order_id}",
                        code=voucher.code,
                        order_id=order.order_id,
                        reason=reason,
                    )

                policy = load_settings(
                    self._restaurant_repository, order.restaurant_id
                ).pricing_policy()
                discounted = order.apply_discount(
                    voucher.calculate_discount(gross, now), voucher.code, policy
                )
                saved = uow.orders.update(discounted)
                session = require_session(uow, order.session_id)
                uow.sessions.update(
                    session.recalculate_total(
                        uow.orders.list_for_session(session.session_id), policy
                    )
                )
                if uow.vouchers.redeem(voucher.voucher_id) is None:
                    record_voucher_redemption(str(order.restaurant_id), "rejected")
                    raise ConflictError(
                        f"voucher {voucher.code} has reached its usage limit",
                        code=voucher.code,
                        reason="USED_UP",
                    )
                uow.commit()
                return saved

        order = run_with_retry(attempt, "apply_voucher")
        record_voucher_redemption(str(order.restaurant_id), "applied")
        logger.info(
            "voucher_applied",
            extra={
                "order_id": str(order.order_id),
                "voucher_code": order.voucher_code,
                "discount_cents": order.totals.discount.amount_cents,
            },
        )
        message = serialize_order_event(
            event_type="order.discounted",
            occurred_at=self._clock(),
            order=order,
            trace_id=trace_ctx.trace_id,
            request_id=trace_ctx.request_id,
        )
        publish_event(self._publisher, str(order.restaurant_id), message)
        return to_order_response(order)


class ComputeSplits:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        publisher: EventPublisher,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._publisher = publisher
        self._clock = clock

    def execute(
        self,
        session_id: SessionId,
        request_dto: ComputeSplitsRequest,
        trace_ctx: TraceContext,
    ) -> BillSplitsResponse:
        split_type = _parse_enum(SplitType, request_dto.split_type, "split_type")

        def attempt() -> DiningSession:
            with self._uow_factory() as uow:
                session = require_session(uow, session_id)
                orders = uow.orders.list_for_session(session_id)
                splits = build_splits(
                    split_type,
                    session.total_amount,
                    [guest.guest_id for guest in session.guests],
                    percentages=self._percentages(request_dto),
                    amounts=self._amounts(request_dto, session.currency),
                    item_totals=_item_totals(session, orders),
                )
                saved = uow.sessions.update(session.replace_splits(splits))
                uow.commit()
                return saved

        session = run_with_retry(attempt, "compute_splits")
        logger.info(
            "bill_split",
            extra={
                "session_id": str(session.session_id),
                "split_type": split_type.value,
                "splits": len(session.splits),
            },
        )
        message = serialize_session_event(
            event_type="bill.split",
            occurred_at=self._clock(),
            session=session,
            trace_id=trace_ctx.trace_id,
            request_id=trace_ctx.request_id,
            extra={"splitType": split_type.value, "splits": len(session.splits)},
        )
        publish_event(self._publisher, str(session.restaurant_id), message)
        return _splits_response(session)

    @staticmethod
    def _percentages(request_dto: ComputeSplitsRequest) -> dict[GuestId, Decimal] | None:
        if request_dto.percentages is None:
            return None
        return {GuestId(key): value for key, value in request_dto.percentages.items()}

    @staticmethod
    def _amounts(request_dto: ComputeSplitsRequest, currency: str) -> dict[GuestId, Money] | None:
        if request_dto.amounts_cents is None:
            return None
        if any(cents < 0 for cents in request_dto.amounts_cents.values()):
            raise ValidationError("split amounts must be >= 0")
        return {
            GuestId(key): Money(amount_cents=cents, currency=currency)
            for key, cents in request_dto.amounts_cents.items()
        }


def _item_totals(session: DiningSession, orders: list[Order]) -> dict[GuestId, Money]:
    totals: dict[GuestId, Money] = {}
    lines = [
        (item.guest_id, item.line_total)
        for order in orders
        if order.is_billable()
        for item in order.items
    ]
    lines.extend((item.guest_id, item.line_total) for item in session.cart.items)
    for guest_id, line_total in lines:
        if guest_id is None:
            continue
        totals[guest_id] = totals.get(guest_id, Money.zero(session.currency)) + line_total
    return totals


class RecordSplitPayment:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        publisher: EventPublisher,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._publisher = publisher
        self._clock = clock

    def execute(
        self,
        session_id: SessionId,
        split_id: BillSplitId,
        request_dto: RecordSplitPaymentRequest,
        trace_ctx: TraceContext,
    ) -> BillSplitsResponse:
        outcome = _parse_enum(SplitPaymentStatus, request_dto.outcome, "outcome")

        def attempt() -> DiningSession:
            with self._uow_factory() as uow:
                session = require_session(uow, session_id)
                updated = session.record_split_payment(
                    split_id, outcome, request_dto.payment_method, self._clock()
                )
                saved = uow.sessions.update(updated)
                if saved.payment_status == PaymentStatus.PAID:
                    for order in uow.orders.list_for_session(session_id):
                        if order.is_billable() and order.payment_status != PaymentStatus.PAID:
                            uow.orders.update(order.mark_paid())
                uow.commit()
                return saved

        session = run_with_retry(attempt, "record_split_payment")
        logger.info(
            "split_payment_recorded",
            extra={
                "session_id": str(session.session_id),
                "split_id": str(split_id),
                "outcome": outcome.value,
                "payment_status": session.payment_status.value,
            },
        )
        message = serialize_session_event(
            event_type="bill.payment_recorded",
            occurred_at=self._clock(),
            session=session,
            trace_id=trace_ctx.trace_id,
            request_id=trace_ctx.request_id,
            extra={"splitId": str(split_id), "outcome": outcome.value},
        )
        publish_event(self._publisher, str(session.restaurant_id), message)
        return _splits_response(session)
