from __future__ import annotations

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from dinein.application.ports.repositories import OptimisticConcurrencyError, TableRepository
from dinein.domain.common.ids import RestaurantId, SessionId, TableId
from dinein.domain.table.entities import Table, TableStatus
from dinein.infrastructure.db.models.table import TableModel
from dinein.infrastructure.db.repositories.common import as_utc, decode_cursor, encode_cursor


class SqlAlchemyTableRepository(TableRepository):
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, table_id: TableId, restaurant_id: RestaurantId) -> Table | None:
        statement = (
            select(TableModel)
            .where(
                TableModel.id == str(table_id),
                TableModel.restaurant_id == str(restaurant_id),
            )
            .execution_options(populate_existing=True)
        )
        model = self._session.execute(statement).scalar_one_or_none()
        return self._to_domain(model) if model is not None else None

    def get_by_qr_code(self, qr_code: str) -> Table | None:
        statement = (
            select(TableModel)
            .where(TableModel.qr_code == qr_code)
            .execution_options(populate_existing=True)
        )
        model = self._session.execute(statement).scalar_one_or_none()
        return self._to_domain(model) if model is not None else None

    def list_for_restaurant(
        self,
        restaurant_id: RestaurantId,
        status: TableStatus | None,
        limit: int,
        cursor: str | None,
    ) -> tuple[list[Table], str | None]:
        statement = select(TableModel).where(TableModel.restaurant_id == str(restaurant_id))
        if status is not None:
            statement = statement.where(TableModel.status == status.value)

        if cursor:
            cursor_number, cursor_id = decode_cursor(cursor)
            statement = statement.where(
                or_(
                    TableModel.table_number > cursor_number,
                    and_(TableModel.table_number == cursor_number, TableModel.id > cursor_id),
                )
            )

        statement = statement.order_by(TableModel.table_number, TableModel.id).limit(limit + 1)
        models = list(self._session.execute(statement).scalars().all())

        page_models = models[:limit]
        next_cursor: str | None = None
        if len(models) > limit and page_models:
            last = page_models[-1]
            next_cursor = encode_cursor(last.table_number, last.id)
        return [self._to_domain(model) for model in page_models], next_cursor

    def occupy(
        self, table_id: TableId, restaurant_id: RestaurantId, session_id: SessionId
    ) -> Table | None:
        statement = (
            update(TableModel)
            .where(
                TableModel.id == str(table_id),
                TableModel.restaurant_id == str(restaurant_id),
                TableModel.status == TableStatus.AVAILABLE.value,
            )
            .values(
                status=TableStatus.OCCUPIED.value,
                current_session_id=str(session_id),
                version=TableModel.version + 1,
            )
        )
        result = self._session.execute(statement)
        if result.rowcount != 1:
            return None
        return self.get(table_id, restaurant_id)

    def update(self, table: Table) -> Table:
        statement = (
            update(TableModel)
            .where(
                TableModel.id == str(table.table_id),
                TableModel.version == table.version,
            )
            .values(
                status=table.status.value,
                current_session_id=(
                    str(table.current_session_id) if table.current_session_id else None
                ),
                last_cleaned_at=table.last_cleaned_at,
                capacity=table.capacity,
                version=table.version + 1,
            )
        )
        result = self._session.execute(statement)
        if result.rowcount != 1:
            raise OptimisticConcurrencyError(f"table {table.table_id} version conflict")
        updated = self.get(table.table_id, table.restaurant_id)
        if updated is None:
            raise RuntimeError(f"table {table.table_id} not found after update")
        return updated

    @staticmethod
    def _to_domain(model: TableModel) -> Table:
        return Table(
            table_id=TableId(model.id),
            restaurant_id=RestaurantId(model.restaurant_id),
            table_number=model.table_number,
            capacity=model.capacity,
            status=TableStatus(model.status),
            current_session_id=(
                SessionId(model.current_session_id) if model.current_session_id else None
            ),
            last_cleaned_at=as_utc(model.last_cleaned_at),
            qr_code=model.qr_code,
            version=model.version,
        )
