from __future__ import annotations

from datetime import datetime

from dinein.application.dto.responses import (
    BillSplitResponse,
    CartItemResponse,
    GuestResponse,
    JoinedSessionResponse,
    SessionHistoryItemResponse,
    SessionResponse,
)
from dinein.application.mappers.money_mapper import to_money_response
from dinein.domain.billing.splits import BillSplit
from dinein.domain.order.entities import Order
from dinein.domain.session.entities import DiningSession, SessionGuest, average_order_value


def to_split_response(split: BillSplit) -> BillSplitResponse:
    return BillSplitResponse(
        splitId=str(split.split_id),
        guestId=str(split.guest_id),
        splitType=split.split_type.value,
        amount=to_money_response(split.amount),
        percentage=str(split.percentage) if split.percentage is not None else None,
        paymentStatus=split.payment_status.value,
        paymentMethod=split.payment_method,
        paidAt=split.paid_at,
    )


def to_session_response(session: DiningSession, now: datetime) -> SessionResponse:
    return SessionResponse(
        sessionId=str(session.session_id),
        restaurantId=str(session.restaurant_id),
        tableId=str(session.table_id),
        sessionCode=session.session_code,
        status=session.status.value,
        guestCount=session.guest_count,
        hostName=session.host_name,
        specialRequests=session.special_requests,
        guests=[
            GuestResponse(
                guestId=str(guest.guest_id),
                name=guest.name,
                isHost=guest.is_host,
                joinedAt=guest.joined_at,
                lastActivityAt=guest.last_activity_at,
                recentlyActive=guest.is_recently_active(now),
            )
            for guest in session.guests
        ],
        cart=[
            CartItemResponse(
                itemId=str(item.item_id),
                guestId=str(item.guest_id),
                menuItemId=str(item.menu_item_id),
                variationId=str(item.variation_id) if item.variation_id else None,
                name=item.name,
                quantity=item.quantity,
                unitPrice=to_money_response(item.unit_price),
                lineTotal=to_money_response(item.line_total),
                notes=item.notes,
                addedAt=item.added_at,
            )
            for item in session.cart.items
        ],
        splits=[to_split_response(split) for split in session.splits],
        totalAmount=to_money_response(session.total_amount),
        tipAmount=to_money_response(session.tip_amount),
        paymentStatus=session.payment_status.value,
        waiterCalled=session.waiter_called,
        waiterCalledAt=session.waiter_called_at,
        waiterRespondedAt=session.waiter_responded_at,
        startedAt=session.started_at,
        endedAt=session.ended_at,
    )


def to_joined_session_response(
    session: DiningSession, guest: SessionGuest, now: datetime
) -> JoinedSessionResponse:
    return JoinedSessionResponse(
        session=to_session_response(session, now),
        guestId=str(guest.guest_id),
        joinToken=guest.join_token,
        isHost=guest.is_host,
    )


def to_session_history_item(
    session: DiningSession, orders: list[Order], now: datetime
) -> SessionHistoryItemResponse:
    billable = [order for order in orders if order.is_billable()]
    return SessionHistoryItemResponse(
        sessionId=str(session.session_id),
        tableId=str(session.table_id),
        sessionCode=session.session_code,
        status=session.status.value,
        guestCount=session.guest_count,
        totalAmount=to_money_response(session.total_amount),
        orderCount=len(billable),
        averageOrderValue=to_money_response(average_order_value(orders, session.currency)),
        durationMinutes=int(session.duration(now).total_seconds() // 60),
        startedAt=session.started_at,
        endedAt=session.ended_at,
    )
