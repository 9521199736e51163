from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Select, and_, or_, select, update
from sqlalchemy.orm import Session, selectinload

from dinein.application.ports.repositories import OptimisticConcurrencyError, SessionRepository
from dinein.domain.billing.splits import BillSplit, SplitPaymentStatus, SplitType
from dinein.domain.cart.entities import Cart, CartItem
from dinein.domain.common.ids import (
    BillSplitId,
    GuestId,
    MenuItemId,
    OrderItemId,
    RestaurantId,
    SessionId,
    TableId,
    VariationId,
)
from dinein.domain.common.money import Money
from dinein.domain.order.entities import PaymentStatus
from dinein.domain.session.entities import (
    LIVE_STATUSES,
    TERMINAL_STATUSES,
    DiningSession,
    SessionGuest,
    SessionStatus,
)
from dinein.infrastructure.db.models.session import (
    BillSplitModel,
    CartItemModel,
    DiningSessionModel,
    SessionGuestModel,
)
from dinein.infrastructure.db.repositories.common import (
    as_utc,
    decode_datetime_cursor,
    encode_cursor,
    insert_or_raise_duplicate,
)

_LIVE = [status.value for status in LIVE_STATUSES]
_TERMINAL = [status.value for status in TERMINAL_STATUSES]


class SqlAlchemySessionRepository(SessionRepository):
    def __init__(self, session: Session) -> None:
        self._session = session

    def add(self, session: DiningSession) -> None:
        def _add() -> None:
            self._session.add(self._to_model(session))

        insert_or_raise_duplicate(self._session, _add)

    def get(self, session_id: SessionId) -> DiningSession | None:
        return self._one(DiningSessionModel.id == str(session_id))

    def get_by_code(self, session_code: str) -> DiningSession | None:
        return self._one(DiningSessionModel.session_code == session_code)

    def get_by_join_token(self, join_token: str) -> DiningSession | None:
        owner = select(SessionGuestModel.session_id).where(
            SessionGuestModel.join_token == join_token
        )
        return self._one(DiningSessionModel.id.in_(owner.scalar_subquery()))

    def get_live_for_table(self, table_id: TableId) -> DiningSession | None:
        return self._one(
            DiningSessionModel.table_id == str(table_id),
            DiningSessionModel.status.in_(_LIVE),
        )

    def update(self, session: DiningSession) -> DiningSession:
        statement = (
            update(DiningSessionModel)
            .where(
                DiningSessionModel.id == str(session.session_id),
                DiningSessionModel.version == session.version,
            )
            .values(
                status=session.status.value,
                host_name=session.host_name,
                host_phone=session.host_phone,
                special_requests=session.special_requests,
                guest_count=session.guest_count,
                total_cents=session.total_amount.amount_cents,
                tip_cents=session.tip_amount.amount_cents,
                payment_status=session.payment_status.value,
                waiter_called=session.waiter_called,
                waiter_called_at=session.waiter_called_at,
                waiter_responded_at=session.waiter_responded_at,
                ended_at=session.ended_at,
                version=session.version + 1,
            )
        )
        result = self._session.execute(statement)
        if result.rowcount != 1:
            raise OptimisticConcurrencyError(f"session {session.session_id} version conflict")

        statement = self._select().where(DiningSessionModel.id == str(session.session_id))
        model = self._session.execute(statement).scalar_one()
        # Replacing the collections lets the ORM diff children by primary key.
        model.guests = self._guest_models(session)
        model.cart_items = self._cart_models(session)
        model.splits = self._split_models(session)
        self._session.flush()
        return self._to_domain(model)

    def list_active(self, restaurant_id: RestaurantId) -> list[DiningSession]:
        return self._many(
            DiningSessionModel.restaurant_id == str(restaurant_id),
            DiningSessionModel.status.in_(_LIVE),
        )

    def list_started_before(
        self, restaurant_id: RestaurantId, threshold: datetime
    ) -> list[DiningSession]:
        return self._many(
            DiningSessionModel.restaurant_id == str(restaurant_id),
            DiningSessionModel.status.in_(_LIVE),
            DiningSessionModel.started_at < threshold,
        )

    def list_history(
        self,
        restaurant_id: RestaurantId,
        limit: int,
        cursor: str | None,
    ) -> tuple[list[DiningSession], str | None]:
        statement = self._select().where(
            DiningSessionModel.restaurant_id == str(restaurant_id),
            DiningSessionModel.status.in_(_TERMINAL),
        )
        if cursor:
            cursor_started_at, cursor_id = decode_datetime_cursor(cursor)
            statement = statement.where(
                or_(
                    DiningSessionModel.started_at < cursor_started_at,
                    and_(
                        DiningSessionModel.started_at == cursor_started_at,
                        DiningSessionModel.id < cursor_id,
                    ),
                )
            )
        statement = statement.order_by(
            DiningSessionModel.started_at.desc(), DiningSessionModel.id.desc()
        ).limit(limit + 1)

        models = list(self._session.execute(statement).scalars().all())
        page_models = models[:limit]
        next_cursor: str | None = None
        if len(models) > limit and page_models:
            last = page_models[-1]
            next_cursor = encode_cursor(as_utc(last.started_at).isoformat(), last.id)
        return [self._to_domain(model) for model in page_models], next_cursor

    def _select(self) -> Select:
        return (
            select(DiningSessionModel)
            .options(
                selectinload(DiningSessionModel.guests),
                selectinload(DiningSessionModel.cart_items),
                selectinload(DiningSessionModel.splits),
            )
            .execution_options(populate_existing=True)
        )

    def _one(self, *criteria) -> DiningSession | None:
        statement = self._select().where(*criteria).limit(1)
        model = self._session.execute(statement).scalar_one_or_none()
        return self._to_domain(model) if model is not None else None

    def _many(self, *criteria) -> list[DiningSession]:
        statement = self._select().where(*criteria).order_by(DiningSessionModel.started_at)
        return [self._to_domain(model) for model in self._session.execute(statement).scalars()]

    def _to_model(self, session: DiningSession) -> DiningSessionModel:
        model = DiningSessionModel(
            id=str(session.session_id),
            restaurant_id=str(session.restaurant_id),
            table_id=str(session.table_id),
            session_code=session.session_code,
            status=session.status.value,
            currency=session.currency,
            host_name=session.host_name,
            host_phone=session.host_phone,
            special_requests=session.special_requests,
            guest_count=session.guest_count,
            total_cents=session.total_amount.amount_cents,
            tip_cents=session.tip_amount.amount_cents,
            payment_status=session.payment_status.value,
            waiter_called=session.waiter_called,
            waiter_called_at=session.waiter_called_at,
            waiter_responded_at=session.waiter_responded_at,
            started_at=session.started_at,
            ended_at=session.ended_at,
            version=session.version,
        )
        model.guests = self._guest_models(session)
        model.cart_items = self._cart_models(session)
        model.splits = self._split_models(session)
        return model

    @staticmethod
    def _guest_models(session: DiningSession) -> list[SessionGuestModel]:
        return [
            SessionGuestModel(
                id=str(guest.guest_id),
                session_id=str(session.session_id),
                position=position,
                name=guest.name,
                phone=guest.phone,
                is_host=guest.is_host,
                join_token=guest.join_token,
                joined_at=guest.joined_at,
                last_activity_at=guest.last_activity_at,
            )
            for position, guest in enumerate(session.guests)
        ]

    @staticmethod
    def _cart_models(session: DiningSession) -> list[CartItemModel]:
        return [
            CartItemModel(
                id=str(item.item_id),
                session_id=str(session.session_id),
                position=position,
                guest_id=str(item.guest_id),
                menu_item_id=str(item.menu_item_id),
                variation_id=str(item.variation_id) if item.variation_id else None,
                name=item.name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price.amount_cents,
                currency=item.unit_price.currency,
                notes=item.notes,
                preparation_minutes=item.preparation_minutes,
                added_at=item.added_at,
            )
            for position, item in enumerate(session.cart.items)
        ]

    @staticmethod
    def _split_models(session: DiningSession) -> list[BillSplitModel]:
        return [
            BillSplitModel(
                id=str(split.split_id),
                session_id=str(session.session_id),
                position=position,
                guest_id=str(split.guest_id),
                split_type=split.split_type.value,
                amount_cents=split.amount.amount_cents,
                currency=split.amount.currency,
                percentage=split.percentage,
                payment_status=split.payment_status.value,
                payment_method=split.payment_method,
                paid_at=split.paid_at,
            )
            for position, split in enumerate(session.splits)
        ]

    @staticmethod
    def _to_domain(model: DiningSessionModel) -> DiningSession:
        currency = model.currency
        guests = [
            SessionGuest(
                guest_id=GuestId(guest.id),
                name=guest.name,
                phone=guest.phone,
                is_host=guest.is_host,
                join_token=guest.join_token,
                joined_at=as_utc(guest.joined_at),
                last_activity_at=as_utc(guest.last_activity_at),
            )
            for guest in model.guests
        ]
        cart_items = [
            CartItem(
                item_id=OrderItemId(item.id),
                guest_id=GuestId(item.guest_id),
                menu_item_id=MenuItemId(item.menu_item_id),
                variation_id=VariationId(item.variation_id) if item.variation_id else None,
                name=item.name,
                quantity=item.quantity,
                unit_price=Money(amount_cents=item.unit_price_cents, currency=item.currency),
                notes=item.notes,
                added_at=as_utc(item.added_at),
                preparation_minutes=item.preparation_minutes,
            )
            for item in model.cart_items
        ]
        splits = [
            BillSplit(
                split_id=BillSplitId(split.id),
                guest_id=GuestId(split.guest_id),
                split_type=SplitType(split.split_type),
                amount=Money(amount_cents=split.amount_cents, currency=split.currency),
                percentage=Decimal(split.percentage) if split.percentage is not None else None,
                payment_status=SplitPaymentStatus(split.payment_status),
                payment_method=split.payment_method,
                paid_at=as_utc(split.paid_at),
            )
            for split in model.splits
        ]
        return DiningSession(
            session_id=SessionId(model.id),
            restaurant_id=RestaurantId(model.restaurant_id),
            table_id=TableId(model.table_id),
            session_code=model.session_code,
            status=SessionStatus(model.status),
            currency=currency,
            started_at=as_utc(model.started_at),
            host_name=model.host_name,
            host_phone=model.host_phone,
            special_requests=model.special_requests,
            guests=guests,
            cart=Cart(items=cart_items),
            splits=splits,
            total_amount=Money(amount_cents=model.total_cents, currency=currency),
            tip_amount=Money(amount_cents=model.tip_cents, currency=currency),
            payment_status=PaymentStatus(model.payment_status),
            waiter_called=model.waiter_called,
            waiter_called_at=as_utc(model.waiter_called_at),
            waiter_responded_at=as_utc(model.waiter_responded_at),
            ended_at=as_utc(model.ended_at),
            version=model.version,
        )
