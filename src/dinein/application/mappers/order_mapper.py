from __future__ import annotations

from dinein.application.dto.responses import OrderItemResponse, OrderResponse
from dinein.application.mappers.money_mapper import to_money_response
from dinein.domain.order.entities import Order


def to_order_response(order: Order) -> OrderResponse:
    totals = order.totals
    return OrderResponse(
        orderId=str(order.order_id),
        sessionId=str(order.session_id),
        restaurantId=str(order.restaurant_id),
        tableId=str(order.table_id),
        orderNumber=order.order_number,
        orderType=order.order_type.value,
        status=order.status.value,
        paymentStatus=order.payment_status.value,
        items=[
            OrderItemResponse(
                itemId=str(item.item_id),
                menuItemId=str(item.menu_item_id),
                variationId=str(item.variation_id) if item.variation_id else None,
                guestId=str(item.guest_id) if item.guest_id else None,
                name=item.name,
                quantity=item.quantity,
                unitPrice=to_money_response(item.unit_price),
                lineTotal=to_money_response(item.line_total),
                notes=item.notes,
                status=item.status.value,
                preparedAt=item.prepared_at,
                servedAt=item.served_at,
            )
            for item in order.items
        ],
        subtotal=to_money_response(totals.subtotal),
        tax=to_money_response(totals.tax),
        serviceCharge=to_money_response(totals.service_charge),
        deliveryFee=to_money_response(totals.delivery_fee),
        discount=to_money_response(totals.discount),
        total=to_money_response(totals.total),
        voucherCode=order.voucher_code,
        createdAt=order.created_at,
        estimatedReadyAt=order.estimated_ready_at,
        readyAt=order.ready_at,
        servedAt=order.served_at,
    )
