from __future__ import annotations

from sqlalchemy import Select, and_, exists, or_, select, update
from sqlalchemy.orm import Session, selectinload

from dinein.application.ports.repositories import OptimisticConcurrencyError, OrderRepository
from dinein.domain.common.ids import (
    GuestId,
    MenuItemId,
    OrderId,
    OrderItemId,
    RestaurantId,
    SessionId,
    TableId,
    VariationId,
)
from dinein.domain.common.money import Money
from dinein.domain.order.entities import (
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    PaymentStatus,
)
from dinein.domain.order.pricing import OrderTotals
from dinein.infrastructure.db.models.order import OrderItemModel, OrderModel
from dinein.infrastructure.db.repositories.common import (
    as_utc,
    decode_datetime_cursor,
    encode_cursor,
    insert_or_raise_duplicate,
)


class SqlAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: Session) -> None:
        self._session = session

    def add(self, order: Order) -> None:
        def _add() -> None:
            self._session.add(self._to_model(order))

        insert_or_raise_duplicate(self._session, _add)

    def get(self, order_id: OrderId) -> Order | None:
        statement = self._select().where(OrderModel.id == str(order_id)).limit(1)
        model = self._session.execute(statement).scalar_one_or_none()
        return self._to_domain(model) if model is not None else None

    def update(self, order: Order) -> Order:
        totals = order.totals
        statement = (
            update(OrderModel)
            .where(
                OrderModel.id == str(order.order_id),
                OrderModel.version == order.version,
            )
            .values(
                status=order.status.value,
                payment_status=order.payment_status.value,
                subtotal_cents=totals.subtotal.amount_cents,
                tax_cents=totals.tax.amount_cents,
                service_charge_cents=totals.service_charge.amount_cents,
                delivery_fee_cents=totals.delivery_fee.amount_cents,
                discount_cents=totals.discount.amount_cents,
                total_cents=totals.total.amount_cents,
                voucher_code=order.voucher_code,
                estimated_ready_at=order.estimated_ready_at,
                ready_at=order.ready_at,
                served_at=order.served_at,
                version=order.version + 1,
            )
        )
        result = self._session.execute(statement)
        if result.rowcount != 1:
            raise OptimisticConcurrencyError(f"order {order.order_id} version conflict")

        model = self._session.execute(
            self._select().where(OrderModel.id == str(order.order_id))
        ).scalar_one()
        items_by_id = {item.item_id: item for item in order.items}
        for item_model in model.items:
            item = items_by_id[OrderItemId(item_model.id)]
            item_model.status = item.status.value
            item_model.prepared_at = item.prepared_at
            item_model.served_at = item.served_at
        self._session.flush()
        return self._to_domain(model)

    def list_for_session(self, session_id: SessionId) -> list[Order]:
        statement = (
            self._select()
            .where(OrderModel.session_id == str(session_id))
            .order_by(OrderModel.created_at, OrderModel.id)
        )
        return [self._to_domain(model) for model in self._session.execute(statement).scalars()]

    def list_for_sessions(self, session_ids: list[SessionId]) -> dict[SessionId, list[Order]]:
        if not session_ids:
            return {}
        statement = (
            self._select()
            .where(OrderModel.session_id.in_([str(session_id) for session_id in session_ids]))
            .order_by(OrderModel.created_at, OrderModel.id)
        )
        grouped: dict[SessionId, list[Order]] = {}
        for model in self._session.execute(statement).scalars():
            order = self._to_domain(model)
            grouped.setdefault(order.session_id, []).append(order)
        return grouped

    def session_has_item(self, session_id: SessionId, item_id: OrderItemId) -> bool:
        statement = select(
            exists().where(
                OrderItemModel.id == str(item_id),
                OrderItemModel.order_id == OrderModel.id,
                OrderModel.session_id == str(session_id),
            )
        )
        return bool(self._session.execute(statement).scalar())

    def list_for_kitchen(
        self,
        restaurant_id: RestaurantId,
        status: OrderStatus | None,
        limit: int,
        cursor: str | None,
    ) -> tuple[list[Order], str | None]:
        statement = self._select().where(OrderModel.restaurant_id == str(restaurant_id))
        if status is not None:
            statement = statement.where(OrderModel.status == status.value)

        if cursor:
            cursor_created_at, cursor_order_id = decode_datetime_cursor(cursor)
            statement = statement.where(
                or_(
                    OrderModel.created_at > cursor_created_at,
                    and_(
                        OrderModel.created_at == cursor_created_at,
                        OrderModel.id > cursor_order_id,
                    ),
                )
            )

        # Oldest first so the kitchen works the queue in arrival order.
        statement = statement.order_by(OrderModel.created_at, OrderModel.id).limit(limit + 1)
        models = list(self._session.execute(statement).scalars().all())

        page_models = models[:limit]
        next_cursor: str | None = None
        if len(models) > limit and page_models:
            last = page_models[-1]
            next_cursor = encode_cursor(as_utc(last.created_at).isoformat(), last.id)
        return [self._to_domain(model) for model in page_models], next_cursor

    @staticmethod
    def _select() -> Select:
        return (
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .execution_options(populate_existing=True)
        )

    @staticmethod
    def _to_model(order: Order) -> OrderModel:
        totals = order.totals
        order_model = OrderModel(
            id=str(order.order_id),
            session_id=str(order.session_id),
            restaurant_id=str(order.restaurant_id),
            table_id=str(order.table_id),
            order_number=order.order_number,
            order_type=order.order_type.value,
            status=order.status.value,
            payment_status=order.payment_status.value,
            subtotal_cents=totals.subtotal.amount_cents,
            tax_cents=totals.tax.amount_cents,
            service_charge_cents=totals.service_charge.amount_cents,
            delivery_fee_cents=totals.delivery_fee.amount_cents,
            discount_cents=totals.discount.amount_cents,
            total_cents=totals.total.amount_cents,
            currency=totals.total.currency,
            voucher_code=order.voucher_code,
            created_at=order.created_at,
            estimated_ready_at=order.estimated_ready_at,
            ready_at=order.ready_at,
            served_at=order.served_at,
            version=order.version,
        )
        order_model.items = [
            OrderItemModel(
                id=str(item.item_id),
                order_id=str(order.order_id),
                position=position,
                menu_item_id=str(item.menu_item_id),
                variation_id=str(item.variation_id) if item.variation_id else None,
                guest_id=str(item.guest_id) if item.guest_id else None,
                name=item.name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price.amount_cents,
                line_total_cents=item.line_total.amount_cents,
                currency=item.unit_price.currency,
                notes=item.notes,
                status=item.status.value,
                preparation_minutes=item.preparation_minutes,
                prepared_at=item.prepared_at,
                served_at=item.served_at,
            )
            for position, item in enumerate(order.items)
        ]
        return order_model

    @staticmethod
    def _to_domain(model: OrderModel) -> Order:
        currency = model.currency

        def money(cents: int) -> Money:
            return Money(amount_cents=cents, currency=currency)

        items = [
            OrderItem(
                item_id=OrderItemId(item.id),
                menu_item_id=MenuItemId(item.menu_item_id),
                variation_id=VariationId(item.variation_id) if item.variation_id else None,
                guest_id=GuestId(item.guest_id) if item.guest_id else None,
                name=item.name,
                quantity=item.quantity,
                unit_price=money(item.unit_price_cents),
                line_total=money(item.line_total_cents),
                notes=item.notes,
                status=OrderStatus(item.status),
                preparation_minutes=item.preparation_minutes,
                prepared_at=as_utc(item.prepared_at),
                served_at=as_utc(item.served_at),
            )
            for item in model.items
        ]
        return Order(
            order_id=OrderId(model.id),
            session_id=SessionId(model.session_id),
            restaurant_id=RestaurantId(model.restaurant_id),
            table_id=TableId(model.table_id),
            order_number=model.order_number,
            order_type=OrderType(model.order_type),
            status=OrderStatus(model.status),
            items=items,
            totals=OrderTotals(
                subtotal=money(model.subtotal_cents),
                tax=money(model.tax_cents),
                service_charge=money(model.service_charge_cents),
                delivery_fee=money(model.delivery_fee_cents),
                discount=money(model.discount_cents),
                total=money(model.total_cents),
            ),
            created_at=as_utc(model.created_at),
            payment_status=PaymentStatus(model.payment_status),
            estimated_ready_at=as_utc(model.estimated_ready_at),
            ready_at=as_utc(model.ready_at),
            served_at=as_utc(model.served_at),
            voucher_code=model.voucher_code,
            version=model.version,
        )
