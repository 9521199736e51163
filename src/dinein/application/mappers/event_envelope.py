from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import uuid4

from dinein.domain.common.money import Money
from dinein.domain.order.entities import Order
from dinein.domain.session.entities import DiningSession
from dinein.domain.table.entities import Table


def _money(money: Money) -> dict[str, Any]:
    return {"amountCents": money.amount_cents, "currency": money.currency}


def _serialize_event(
    *,
    event_type: str,
    occurred_at: datetime,
    restaurant_id: str,
    payload: dict[str, Any],
    trace_id: str | None,
    request_id: str | None,
) -> str:
    envelope = {
        "event_id": str(uuid4()),
        "event_type": event_type,
        "occurred_at": occurred_at.isoformat(),
        "request_id": request_id,
        "trace_id": trace_id,
        "restaurant_id": restaurant_id,
        "payload": payload,
    }
    return json.dumps(envelope, separators=(",", ":"), ensure_ascii=False)


def serialize_session_event(
    *,
    event_type: str,
    occurred_at: datetime,
    session: DiningSession,
    trace_id: str | None,
    request_id: str | None,
    extra: dict[str, Any] | None = None,
) -> str:
    payload: dict[str, Any] = {
        "sessionId": str(session.session_id),
        "tableId": str(session.table_id),
        "sessionCode": session.session_code,
        "status": session.status.value,
        "guestCount": session.guest_count,
        "totalAmount": _money(session.total_amount),
        "paymentStatus": session.payment_status.value,
        "waiterCalled": session.waiter_called,
    }
    if extra:
        payload.update(extra)
    return _serialize_event(
        event_type=event_type,
        occurred_at=occurred_at,
        restaurant_id=str(session.restaurant_id),
        trace_id=trace_id,
        request_id=request_id,
        payload=payload,
    )


def serialize_order_event(
    *,
    event_type: str,
    occurred_at: datetime,
    order: Order,
    trace_id: str | None,
    request_id: str | None,
) -> str:
    return _serialize_event(
        event_type=event_type,
        occurred_at=occurred_at,
        restaurant_id=str(order.restaurant_id),
        trace_id=trace_id,
        request_id=request_id,
        payload={
            "orderId": str(order.order_id),
            "sessionId": str(order.session_id),
            "tableId": str(order.table_id),
            "orderNumber": order.order_number,
            "status": order.status.value,
            "totalMoney": _money(order.total),
            "createdAt": order.created_at.isoformat(),
            "estimatedReadyAt": (
                order.estimated_ready_at.isoformat() if order.estimated_ready_at else None
            ),
            "items": [
                {
                    "itemId": str(item.item_id),
                    "menuItemId": str(item.menu_item_id),
                    "name": item.name,
                    "quantity": item.quantity,
                    "lineTotal": _money(item.line_total),
                    "notes": item.notes,
                    "status": item.status.value,
                }
                for item in order.items
            ],
        },
    )


def serialize_table_event(
    *,
    event_type: str,
    occurred_at: datetime,
    table: Table,
    trace_id: str | None,
    request_id: str | None,
) -> str:
    return _serialize_event(
        event_type=event_type,
        occurred_at=occurred_at,
        restaurant_id=str(table.restaurant_id),
        trace_id=trace_id,
        request_id=request_id,
        payload={
            "tableId": str(table.table_id),
            "tableNumber": table.table_number,
            "status": table.status.value,
            "currentSessionId": (
                str(table.current_session_id) if table.current_session_id else None
            ),
        },
    )
