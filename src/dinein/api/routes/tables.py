from __future__ import annotations

from fastapi import APIRouter, Query

from dinein.api import dependencies as deps
from dinein.application.dto.requests import SetTableStatusRequest
from dinein.application.dto.responses import TableListResponse, TableResponse
from dinein.application.use_cases.tables import (
    GetTable,
    ListTables,
    MarkTableNeedsCleaning,
    SetTableStatus,
)
from dinein.domain.common.ids import RestaurantId, TableId

router = APIRouter()


@router.get("/v1/restaurants/{restaurant_id}/tables", response_model=TableListResponse)
def list_tables(
    restaurant_id: str,
    status: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    cursor: str | None = Query(default=None),
) -> TableListResponse:
    return ListTables(uow_factory=deps.unit_of_work).execute(
        restaurant_id=RestaurantId(restaurant_id),
        status=status,
        limit=limit,
        cursor=cursor,
    )


@router.get("/v1/restaurants/{restaurant_id}/tables/{table_id}", response_model=TableResponse)
def get_table(restaurant_id: str, table_id: str) -> TableResponse:
    return GetTable(uow_factory=deps.unit_of_work).execute(
        restaurant_id=RestaurantId(restaurant_id),
        table_id=TableId(table_id),
    )


@router.put(
    "/v1/restaurants/{restaurant_id}/tables/{table_id}/status",
    response_model=TableResponse,
)
def set_table_status(
    restaurant_id: str,
    table_id: str,
    request_dto: SetTableStatusRequest,
) -> TableResponse:
    use_case = SetTableStatus(uow_factory=deps.unit_of_work, publisher=deps.event_publisher())
    return use_case.execute(
        restaurant_id=RestaurantId(restaurant_id),
        table_id=TableId(table_id),
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )


@router.post(
    "/v1/restaurants/{restaurant_id}/tables/{table_id}/needs-cleaning",
    response_model=TableResponse,
)
def mark_table_needs_cleaning(restaurant_id: str, table_id: str) -> TableResponse:
    use_case = MarkTableNeedsCleaning(
        uow_factory=deps.unit_of_work,
        publisher=deps.event_publisher(),
    )
    return use_case.execute(
        restaurant_id=RestaurantId(restaurant_id),
        table_id=TableId(table_id),
        trace_ctx=deps.current_trace_context(),
    )
