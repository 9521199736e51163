from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from dinein.api import dependencies as deps
from dinein.application.dto.requests import (
    JoinByCodeRequest,
    JoinTableRequest,
    SetTipRequest,
    StartSessionRequest,
)
from dinein.application.dto.responses import (
    JoinedSessionResponse,
    OrderListResponse,
    SessionHistoryResponse,
    SessionListResponse,
    SessionResponse,
    TableSessionStatusResponse,
)
from dinein.application.use_cases.guests import LeaveSession, ResolveGuest
from dinein.application.use_cases.order_status import ListSessionOrders
from dinein.application.use_cases.session_lifecycle import (
    CallWaiter,
    CancelSession,
    CompleteSession,
    PauseSession,
    RequestPayment,
    ResumeSession,
    SetTip,
    WaiterResponded,
)
from dinein.application.use_cases.session_queries import (
    GetSession,
    GetSessionByCode,
    GetTableSessionStatus,
    ListActiveSessions,
    ListLongRunningSessions,
    SessionHistory,
)
from dinein.application.use_cases.start_session import (
    JoinSessionByCode,
    JoinTable,
    StartSession,
)
from dinein.domain.common.ids import RestaurantId, SessionId, TableId

router = APIRouter()


def _entry_dependencies() -> dict[str, object]:
    return {
        "uow_factory": deps.unit_of_work,
        "restaurant_repository": deps.restaurant_repository(),
        "publisher": deps.event_publisher(),
    }


def _start_session_use_case() -> StartSession:
    return StartSession(**_entry_dependencies())


def _join_table_use_case() -> JoinTable:
    return JoinTable(**_entry_dependencies())


def _join_by_code_use_case() -> JoinSessionByCode:
    return JoinSessionByCode(**_entry_dependencies())


def _leave_session_use_case() -> LeaveSession:
    return LeaveSession(**_entry_dependencies())


@router.post(
    "/v1/restaurants/{restaurant_id}/tables/{table_id}/sessions",
    response_model=JoinedSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_session(
    restaurant_id: str,
    table_id: str,
    request_dto: StartSessionRequest,
) -> JoinedSessionResponse:
    return _start_session_use_case().execute(
        restaurant_id=RestaurantId(restaurant_id),
        table_id=TableId(table_id),
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )


@router.post(
    "/v1/restaurants/{restaurant_id}/tables/{table_id}/join",
    response_model=JoinedSessionResponse,
)
def join_table(
    restaurant_id: str,
    table_id: str,
    request_dto: JoinTableRequest,
) -> JoinedSessionResponse:
    return _join_table_use_case().execute(
        restaurant_id=RestaurantId(restaurant_id),
        table_id=TableId(table_id),
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )


@router.post("/v1/qr/{qr_code}/join", response_model=JoinedSessionResponse)
def join_by_qr_code(qr_code: str, request_dto: JoinTableRequest) -> JoinedSessionResponse:
    return _join_table_use_case().execute_for_qr(
        qr_code=qr_code,
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )


@router.get("/v1/qr/{qr_code}/active-session", response_model=TableSessionStatusResponse)
def table_session_status(qr_code: str) -> TableSessionStatusResponse:
    return GetTableSessionStatus(uow_factory=deps.unit_of_work).execute(qr_code=qr_code)


@router.get("/v1/session-codes/{session_code}", response_model=SessionResponse)
def get_session_by_code(session_code: str) -> SessionResponse:
    return GetSessionByCode(uow_factory=deps.unit_of_work).execute(session_code=session_code)


@router.post("/v1/sessions/join", response_model=JoinedSessionResponse)
def join_by_code(request_dto: JoinByCodeRequest) -> JoinedSessionResponse:
    return _join_by_code_use_case().execute(
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )


@router.get("/v1/sessions/me", response_model=JoinedSessionResponse)
def resolve_guest(join_token: str = Depends(deps.require_join_token)) -> JoinedSessionResponse:
    return ResolveGuest(uow_factory=deps.unit_of_work).execute(join_token=join_token)


@router.post("/v1/sessions/me/leave", response_model=SessionResponse)
def leave_session(join_token: str = Depends(deps.require_join_token)) -> SessionResponse:
    return _leave_session_use_case().execute(
        join_token=join_token,
        trace_ctx=deps.current_trace_context(),
    )


@router.get("/v1/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str) -> SessionResponse:
    return GetSession(uow_factory=deps.unit_of_work).execute(session_id=SessionId(session_id))


@router.get("/v1/sessions/{session_id}/orders", response_model=OrderListResponse)
def list_session_orders(session_id: str) -> OrderListResponse:
    return ListSessionOrders(uow_factory=deps.unit_of_work).execute(
        session_id=SessionId(session_id)
    )


@router.post("/v1/sessions/{session_id}/pause", response_model=SessionResponse)
def pause_session(session_id: str) -> SessionResponse:
    return PauseSession(**_entry_dependencies()).execute(
        session_id=SessionId(session_id),
        trace_ctx=deps.current_trace_context(),
    )


@router.post("/v1/sessions/{session_id}/resume", response_model=SessionResponse)
def resume_session(session_id: str) -> SessionResponse:
    return ResumeSession(**_entry_dependencies()).execute(
        session_id=SessionId(session_id),
        trace_ctx=deps.current_trace_context(),
    )


@router.post("/v1/sessions/{session_id}/request-payment", response_model=SessionResponse)
def request_payment(
    session_id: str,
    join_token: str | None = Depends(deps.optional_join_token),
) -> SessionResponse:
    return RequestPayment(**_entry_dependencies()).execute(
        session_id=SessionId(session_id),
        trace_ctx=deps.current_trace_context(),
        join_token=join_token,
    )


@router.post("/v1/sessions/{session_id}/complete", response_model=SessionResponse)
def complete_session(session_id: str) -> SessionResponse:
    return CompleteSession(**_entry_dependencies()).execute(
        session_id=SessionId(session_id),
        trace_ctx=deps.current_trace_context(),
    )


@router.post("/v1/sessions/{session_id}/cancel", response_model=SessionResponse)
def cancel_session(session_id: str) -> SessionResponse:
    return CancelSession(**_entry_dependencies()).execute(
        session_id=SessionId(session_id),
        trace_ctx=deps.current_trace_context(),
    )


@router.post("/v1/sessions/{session_id}/waiter", response_model=SessionResponse)
def call_waiter(
    session_id: str,
    join_token: str | None = Depends(deps.optional_join_token),
) -> SessionResponse:
    return CallWaiter(**_entry_dependencies()).execute(
        session_id=SessionId(session_id),
        trace_ctx=deps.current_trace_context(),
        join_token=join_token,
    )


@router.post("/v1/sessions/{session_id}/waiter/responded", response_model=SessionResponse)
def waiter_responded(session_id: str) -> SessionResponse:
    return WaiterResponded(**_entry_dependencies()).execute(
        session_id=SessionId(session_id),
        trace_ctx=deps.current_trace_context(),
    )


@router.put("/v1/sessions/{session_id}/tip", response_model=SessionResponse)
def set_tip(
    session_id: str,
    request_dto: SetTipRequest,
    join_token: str | None = Depends(deps.optional_join_token),
) -> SessionResponse:
    return SetTip(**_entry_dependencies()).execute(
        session_id=SessionId(session_id),
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
        join_token=join_token,
    )


@router.get(
    "/v1/restaurants/{restaurant_id}/sessions/active",
    response_model=SessionListResponse,
)
def list_active_sessions(restaurant_id: str) -> SessionListResponse:
    return ListActiveSessions(uow_factory=deps.unit_of_work).execute(
        restaurant_id=RestaurantId(restaurant_id)
    )


@router.get(
    "/v1/restaurants/{restaurant_id}/sessions/long-running",
    response_model=SessionListResponse,
)
def list_long_running_sessions(restaurant_id: str) -> SessionListResponse:
    use_case = ListLongRunningSessions(
        uow_factory=deps.unit_of_work,
        threshold=deps.long_running_threshold(),
    )
    return use_case.execute(restaurant_id=RestaurantId(restaurant_id))


@router.get(
    "/v1/restaurants/{restaurant_id}/sessions/history",
    response_model=SessionHistoryResponse,
)
def session_history(
    restaurant_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    cursor: str | None = Query(default=None),
) -> SessionHistoryResponse:
    return SessionHistory(uow_factory=deps.unit_of_work).execute(
        restaurant_id=RestaurantId(restaurant_id),
        limit=limit,
        cursor=cursor,
    )
