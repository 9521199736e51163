from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from dinein.application.dto.requests import SetTableStatusRequest
from dinein.application.dto.responses import TableListResponse, TableResponse
from dinein.application.mappers.event_envelope import serialize_table_event
from dinein.application.mappers.table_mapper import to_table_response
from dinein.application.ports.clock import Clock, utc_now
from dinein.application.ports.publisher import EventPublisher
from dinein.application.ports.repositories import InvalidCursorError, UnitOfWork
from dinein.application.use_cases.context import TraceContext
from dinein.application.use_cases.support import (
    UnitOfWorkFactory,
    publish_event,
    run_with_retry,
)
from dinein.domain.common.errors import NotFoundError, ValidationError
from dinein.domain.common.ids import RestaurantId, TableId
from dinein.domain.table.entities import Table, TableStatus

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


def require_table(uow: UnitOfWork, restaurant_id: RestaurantId, table_id: TableId) -> Table:
    table = uow.tables.get(table_id=table_id, restaurant_id=restaurant_id)
    if table is None:
        raise NotFoundError(
            f"table not found for restaurant_id={restaurant_id}, table_id={table_id}",
            restaurant_id=restaurant_id,
            table_id=table_id,
        )
    return table


def parse_table_status(value: str) -> TableStatus:
    try:
        return TableStatus(value.upper())
    except ValueError as exc:
        raise ValidationError(f"invalid table status: {value}", status=value) from exc


class GetTable:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def execute(self, restaurant_id: RestaurantId, table_id: TableId) -> TableResponse:
        with self._uow_factory() as uow:
            table = require_table(uow, restaurant_id, table_id)
        return to_table_response(table)


class ListTables:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def execute(
        self,
        restaurant_id: RestaurantId,
        status: str | None = None,
        limit: int = 50,
        cursor: str | None = None,
    ) -> TableListResponse:
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", limit=limit)
        status_filter = parse_table_status(status) if status else None

        with self._uow_factory() as uow:
            try:
                tables, next_cursor = uow.tables.list_for_restaurant(
                    restaurant_id=restaurant_id,
                    status=status_filter,
                    limit=limit,
                    cursor=cursor,
                )
            except InvalidCursorError as exc:
                raise ValidationError("invalid cursor", cursor=cursor) from exc

        return TableListResponse(
            tables=[to_table_response(table) for table in tables],
            nextCursor=next_cursor,
        )


class _TableStatusCommand:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        publisher: EventPublisher,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._publisher = publisher
        self._clock = clock

    def _apply(
        self,
        restaurant_id: RestaurantId,
        table_id: TableId,
        change: Callable[[Table, datetime], Table],
        trace_ctx: TraceContext,
    ) -> TableResponse:
        def attempt() -> tuple[Table, Table]:
            with self._uow_factory() as uow:
                table = require_table(uow, restaurant_id, table_id)
                updated = change(table, self._clock())
                if updated == table:
                    return table, table
                saved = uow.tables.update(updated)
                uow.commit()
                return table, saved

        before, after = run_with_retry(attempt, "set_table_status")
        if after.status != before.status:
            logger.info(
                "table_status_changed",
                extra={
                    "restaurant_id": str(restaurant_id),
                    "table_id": str(table_id),
                    "status": after.status.value,
                },
            )
            message = serialize_table_event(
                event_type="table.status_changed",
                occurred_at=self._clock(),
                table=after,
                trace_id=trace_ctx.trace_id,
                request_id=trace_ctx.request_id,
            )
            publish_event(self._publisher, str(restaurant_id), message)
        return to_table_response(after)


class SetTableStatus(_TableStatusCommand):
    """Staff-managed status changes. Occupancy only moves with a session."""

    def execute(
        self,
        restaurant_id: RestaurantId,
        table_id: TableId,
        request_dto: SetTableStatusRequest,
        trace_ctx: TraceContext,
    ) -> TableResponse:
        status = parse_table_status(request_dto.status)
        return self._apply(
            restaurant_id,
            table_id,
            lambda table, now: table.set_status(status, now),
            trace_ctx,
        )


class MarkTableNeedsCleaning(_TableStatusCommand):
    def execute(
        self,
        restaurant_id: RestaurantId,
        table_id: TableId,
        trace_ctx: TraceContext,
    ) -> TableResponse:
        return self._apply(
            restaurant_id,
            table_id,
            lambda table, now: table.mark_needs_cleaning(),
            trace_ctx,
        )
