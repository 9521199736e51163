from __future__ import annotations

from datetime import datetime
from typing import Protocol

from dinein.domain.billing.vouchers import Voucher
from dinein.domain.common.ids import (
    OrderId,
    OrderItemId,
    RestaurantId,
    SessionId,
    TableId,
    VoucherId,
)
from dinein.domain.menu.entities import Menu
from dinein.domain.order.entities import Order, OrderStatus
from dinein.domain.restaurant.entities import RestaurantSettings
from dinein.domain.session.entities import DiningSession
from dinein.domain.table.entities import Table, TableStatus


class MenuRepository(Protocol):
    def get_menu_by_restaurant_id(self, restaurant_id: RestaurantId) -> Menu | None: ...


class RestaurantRepository(Protocol):
    def get_settings(self, restaurant_id: RestaurantId) -> RestaurantSettings | None: ...


class TableRepository(Protocol):
    def get(self, table_id: TableId, restaurant_id: RestaurantId) -> Table | None: ...

    def get_by_qr_code(self, qr_code: str) -> Table | None: ...

    def list_for_restaurant(
        self,
        restaurant_id: RestaurantId,
        status: TableStatus | None,
        limit: int,
        cursor: str | None,
    ) -> tuple[list[Table], str | None]: ...

    def occupy(
        self, table_id: TableId, restaurant_id: RestaurantId, session_id: SessionId
    ) -> Table | None:
        """Atomically move an AVAILABLE table to OCCUPIED; None when it was not available."""
        ...

    def update(self, table: Table) -> Table: ...


class SessionRepository(Protocol):
    def add(self, session: DiningSession) -> None: ...

    def get(self, session_id: SessionId) -> DiningSession | None: ...

    def get_by_code(self, session_code: str) -> DiningSession | None: ...

    def get_by_join_token(self, join_token: str) -> DiningSession | None: ...

    def get_live_for_table(self, table_id: TableId) -> DiningSession | None: ...

    def update(self, session: DiningSession) -> DiningSession: ...

    def list_active(self, restaurant_id: RestaurantId) -> list[DiningSession]: ...

    def list_started_before(
        self, restaurant_id: RestaurantId, threshold: datetime
    ) -> list[DiningSession]: ...

    def list_history(
        self,
        restaurant_id: RestaurantId,
        limit: int,
        cursor: str | None,
    ) -> tuple[list[DiningSession], str | None]: ...


class OrderRepository(Protocol):
    def add(self, order: Order) -> None: ...

    def get(self, order_id: OrderId) -> Order | None: ...

    def update(self, order: Order) -> Order: ...

    def list_for_session(self, session_id: SessionId) -> list[Order]: ...

    def list_for_sessions(self, session_ids: list[SessionId]) -> dict[SessionId, list[Order]]: ...

    def session_has_item(self, session_id: SessionId, item_id: OrderItemId) -> bool: ...

    def list_for_kitchen(
        self,
        restaurant_id: RestaurantId,
        status: OrderStatus | None,
        limit: int,
        cursor: str | None,
    ) -> tuple[list[Order], str | None]: ...


class VoucherRepository(Protocol):
    def get_by_code(self, restaurant_id: RestaurantId, code: str) -> Voucher | None: ...

    def redeem(self, voucher_id: VoucherId) -> Voucher | None:
        """Increment the usage count unless the limit is reached; None when rejected."""
        ...


class UnitOfWork(Protocol):
    tables: TableRepository
    sessions: SessionRepository
    orders: OrderRepository
    vouchers: VoucherRepository

    def __enter__(self) -> UnitOfWork: ...

    def __exit__(self, *args: object) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class DuplicateKeyError(Exception):
    def __init__(self, constraint: str | None) -> None:
        super().__init__(f"duplicate key violates {constraint or 'a unique constraint'}")
        self.constraint = constraint


class OptimisticConcurrencyError(Exception):
    pass


class InvalidCursorError(Exception):
    pass


# Unique constraints whose violation a use case reacts to.
SESSION_CODE_CONSTRAINT = "uq_dining_sessions_code"
LIVE_TABLE_SESSION_CONSTRAINT = "uq_dining_sessions_live_table"
ORDER_NUMBER_CONSTRAINT = "uq_orders_restaurant_order_number"
