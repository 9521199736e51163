from __future__ import annotations

from datetime import timedelta

from dinein.application.dto.responses import (
    SessionHistoryResponse,
    SessionListResponse,
    SessionResponse,
    TableSessionStatusResponse,
)
from dinein.application.mappers.session_mapper import (
    to_session_history_item,
    to_session_response,
)
from dinein.application.mappers.table_mapper import to_table_session_status
from dinein.application.ports.clock import Clock, utc_now
from dinein.application.ports.repositories import InvalidCursorError
from dinein.application.use_cases.support import UnitOfWorkFactory, require_session
from dinein.domain.common.codes import is_session_code
from dinein.domain.common.errors import NotFoundError, ValidationError
from dinein.domain.common.ids import RestaurantId, SessionId

DEFAULT_LONG_RUNNING_THRESHOLD = timedelta(minutes=180)


class GetSession:
    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    def execute(self, session_id: SessionId) -> SessionResponse:
        with self._uow_factory() as uow:
            session = require_session(uow, session_id)
        return to_session_response(session, self._clock())


class GetSessionByCode:
    """Read-only lookup for the code a guest typed in, without joining."""

    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    def execute(self, session_code: str) -> SessionResponse:
        code = session_code.strip().upper()
        if not is_session_code(code):
            raise ValidationError("session code must be 6 letters or digits", session_code=code)
        with self._uow_factory() as uow:
            session = uow.sessions.get_by_code(code)
        if session is None:
            raise NotFoundError(f"no session with code {code}", session_code=code)
        return to_session_response(session, self._clock())


class GetTableSessionStatus:
    """What a scanned QR code leads to: start a new session or join the live one."""

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def execute(self, qr_code: str) -> TableSessionStatusResponse:
        with self._uow_factory() as uow:
            table = uow.tables.get_by_qr_code(qr_code)
            if table is None:
                raise NotFoundError("no table registered for QR code", qr_code=qr_code)
            session = uow.sessions.get_live_for_table(table.table_id)
        return to_table_session_status(table, session)


class ListActiveSessions:
    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    def execute(self, restaurant_id: RestaurantId) -> SessionListResponse:
        with self._uow_factory() as uow:
            sessions = uow.sessions.list_active(restaurant_id)
        now = self._clock()
        return SessionListResponse(
            sessions=[to_session_response(session, now) for session in sessions]
        )


class ListLongRunningSessions:
    """Live sessions that started longer ago than the threshold."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        threshold: timedelta = DEFAULT_LONG_RUNNING_THRESHOLD,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._threshold = threshold
        self._clock = clock

    def execute(self, restaurant_id: RestaurantId) -> SessionListResponse:
        now = self._clock()
        with self._uow_factory() as uow:
            sessions = uow.sessions.list_started_before(restaurant_id, now - self._threshold)
        return SessionListResponse(
            sessions=[to_session_response(session, now) for session in sessions]
        )


class SessionHistory:
    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    def execute(
        self,
        restaurant_id: RestaurantId,
        limit: int = 50,
        cursor: str | None = None,
    ) -> SessionHistoryResponse:
        if limit < 1 or limit > 200:
            raise ValidationError("limit must be between 1 and 200", limit=limit)

        with self._uow_factory() as uow:
            try:
                sessions, next_cursor = uow.sessions.list_history(
                    restaurant_id=restaurant_id,
                    limit=limit,
                    cursor=cursor,
                )
            except InvalidCursorError as exc:
                raise ValidationError("invalid cursor", cursor=cursor) from exc
            orders_by_session = uow.orders.list_for_sessions(
                [session.session_id for session in sessions]
            )

        now = self._clock()
        return SessionHistoryResponse(
            sessions=[
                to_session_history_item(
                    session, orders_by_session.get(session.session_id, []), now
                )
                for session in sessions
            ],
            nextCursor=next_cursor,
        )
