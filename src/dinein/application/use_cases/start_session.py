from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from dinein.application.dto.requests import (
    JoinByCodeRequest,
    JoinTableRequest,
    StartSessionRequest,
)
from dinein.application.dto.responses import JoinedSessionResponse
from dinein.application.mappers.event_envelope import serialize_session_event
from dinein.application.mappers.session_mapper import to_joined_session_response
from dinein.application.metrics.lifecycle import (
    record_capacity_rejection,
    record_code_collision,
    record_guest_admitted,
    record_session_started,
)
from dinein.application.ports.clock import Clock, utc_now
from dinein.application.ports.publisher import EventPublisher
from dinein.application.ports.repositories import (
    LIVE_TABLE_SESSION_CONSTRAINT,
    SESSION_CODE_CONSTRAINT,
    DuplicateKeyError,
    RestaurantRepository,
    UnitOfWork,
)
from dinein.application.use_cases.context import TraceContext
from dinein.application.use_cases.support import (
    MAX_CODE_ATTEMPTS,
    UnitOfWorkFactory,
    load_settings,
    publish_event,
    run_with_retry,
)
from dinein.application.use_cases.tables import require_table
from dinein.domain.common.codes import is_session_code, new_id, new_join_token, new_session_code
from dinein.domain.common.errors import (
    CapacityExceededError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from dinein.domain.common.ids import GuestId, RestaurantId, SessionId, TableId
from dinein.domain.session.entities import DiningSession, SessionGuest, SessionStatus
from dinein.domain.table.entities import Table

logger = logging.getLogger(__name__)


def new_guest(name: str, phone: str | None, is_host: bool, now: datetime) -> SessionGuest:
    return SessionGuest(
        guest_id=GuestId(new_id("gst")),
        name=name.strip(),
        phone=phone,
        is_host=is_host,
        join_token=new_join_token(),
        joined_at=now,
        last_activity_at=now,
    )


def open_session(
    uow: UnitOfWork,
    table: Table,
    currency: str,
    host: SessionGuest,
    special_requests: str | None,
    now: datetime,
) -> DiningSession:
    """Occupy ``table`` and persist a new ACTIVE session hosted by ``host``."""
    session_id = SessionId(new_id("ses"))
    occupied = uow.tables.occupy(
        table_id=table.table_id,
        restaurant_id=table.restaurant_id,
        session_id=session_id,
    )
    if occupied is None:
        raise ConflictError(
            f"table {table.table_id} is not available",
            table_id=table.table_id,
            status=table.status.value,
            current_session_id=table.current_session_id,
        )

    for _ in range(MAX_CODE_ATTEMPTS):
        session = DiningSession.start(
            session_id=session_id,
            restaurant_id=table.restaurant_id,
            table_id=table.table_id,
            session_code=new_session_code(),
            currency=currency,
            host=host,
            special_requests=special_requests,
            now=now,
        )
        try:
            uow.sessions.add(session)
        except DuplicateKeyError as exc:
            if exc.constraint == SESSION_CODE_CONSTRAINT:
                record_code_collision("session_code")
                continue
            if exc.constraint == LIVE_TABLE_SESSION_CONSTRAINT:
                raise ConflictError(
                    f"table {table.table_id} already has a live session",
                    table_id=table.table_id,
                ) from exc
            raise
        return session

    raise ConflictError(
        "could not allocate a unique session code",
        table_id=table.table_id,
        attempts=MAX_CODE_ATTEMPTS,
    )


class _SessionEntry:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        restaurant_repository: RestaurantRepository,
        publisher: EventPublisher,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._restaurant_repository = restaurant_repository
        self._publisher = publisher
        self._clock = clock

    def _start(
        self,
        uow: UnitOfWork,
        table: Table,
        host_name: str,
        host_phone: str | None,
        special_requests: str | None,
    ) -> tuple[DiningSession, SessionGuest]:
        settings = load_settings(self._restaurant_repository, table.restaurant_id)
        now = self._clock()
        host = new_guest(host_name, host_phone, is_host=True, now=now)
        session = open_session(uow, table, settings.currency, host, special_requests, now)
        uow.commit()
        return session, host

    def _admit(
        self, uow: UnitOfWork, session: DiningSession, name: str, phone: str | None
    ) -> tuple[DiningSession, SessionGuest]:
        table = require_table(uow, session.restaurant_id, session.table_id)
        guest = new_guest(name, phone, is_host=False, now=self._clock())
        try:
            admitted = session.admit_guest(guest, capacity=table.capacity)
        except CapacityExceededError:
            record_capacity_rejection(str(session.restaurant_id))
            logger.info(
                "guest_rejected_capacity",
                extra={
                    "session_id": str(session.session_id),
                    "table_id": str(session.table_id),
                    "capacity": table.capacity,
                },
            )
            raise
        saved = uow.sessions.update(admitted)
        uow.commit()
        return saved, guest

    def _announce(
        self,
        event_type: str,
        session: DiningSession,
        guest: SessionGuest,
        trace_ctx: TraceContext,
    ) -> JoinedSessionResponse:
        now = self._clock()
        if guest.is_host:
            record_session_started(session)
            logger.info(
                "session_started",
                extra={
                    "restaurant_id": str(session.restaurant_id),
                    "session_id": str(session.session_id),
                    "table_id": str(session.table_id),
                },
            )
        else:
            record_guest_admitted(str(session.restaurant_id))
            logger.info(
                "guest_joined",
                extra={
                    "session_id": str(session.session_id),
                    "guest_id": str(guest.guest_id),
                    "guest_count": session.guest_count,
                },
            )
        message = serialize_session_event(
            event_type=event_type,
            occurred_at=now,
            session=session,
            trace_id=trace_ctx.trace_id,
            request_id=trace_ctx.request_id,
            extra={"guestId": str(guest.guest_id), "guestName": guest.name},
        )
        publish_event(self._publisher, str(session.restaurant_id), message)
        return to_joined_session_response(session, guest, now)


class StartSession(_SessionEntry):
    def execute(
        self,
        restaurant_id: RestaurantId,
        table_id: TableId,
        request_dto: StartSessionRequest,
        trace_ctx: TraceContext,
    ) -> JoinedSessionResponse:
        with self._uow_factory() as uow:
            table = require_table(uow, restaurant_id, table_id)
            session, host = self._start(
                uow,
                table,
                request_dto.host_name,
                request_dto.host_phone,
                request_dto.special_requests,
            )
        return self._announce("session.started", session, host, trace_ctx)


class JoinTable(_SessionEntry):
    """The table scan: join the live session or start one as its host."""

    def execute(
        self,
        restaurant_id: RestaurantId,
        table_id: TableId,
        request_dto: JoinTableRequest,
        trace_ctx: TraceContext,
    ) -> JoinedSessionResponse:
        return self._join(
            lambda uow: require_table(uow, restaurant_id, table_id),
            request_dto,
            trace_ctx,
        )

    def execute_for_qr(
        self,
        qr_code: str,
        request_dto: JoinTableRequest,
        trace_ctx: TraceContext,
    ) -> JoinedSessionResponse:
        def resolve(uow: UnitOfWork) -> Table:
            table = uow.tables.get_by_qr_code(qr_code)
            if table is None:
                raise NotFoundError("no table registered for QR code", qr_code=qr_code)
            return table

        return self._join(resolve, request_dto, trace_ctx)

    def _join(
        self,
        resolve_table: Callable[[UnitOfWork], Table],
        request_dto: JoinTableRequest,
        trace_ctx: TraceContext,
    ) -> JoinedSessionResponse:
        def attempt() -> tuple[DiningSession, SessionGuest]:
            with self._uow_factory() as uow:
                table = resolve_table(uow)
                live = uow.sessions.get_live_for_table(table.table_id)
                if live is not None:
                    return self._admit(uow, live, request_dto.name, request_dto.phone)
                return self._start(uow, table, request_dto.name, request_dto.phone, None)

        def join_or_start() -> tuple[DiningSession, SessionGuest]:
            try:
                return attempt()
            except ConflictError:
                # Another scanner opened the session first; join it as a guest.
                return attempt()

        session, guest = run_with_retry(join_or_start, "join_table")
        event_type = "session.started" if guest.is_host else "session.guest_joined"
        return self._announce(event_type, session, guest, trace_ctx)


class JoinSessionByCode(_SessionEntry):
    def execute(
        self, request_dto: JoinByCodeRequest, trace_ctx: TraceContext
    ) -> JoinedSessionResponse:
        code = request_dto.session_code.strip().upper()
        if not is_session_code(code):
            raise ValidationError("session code must be 6 letters or digits", session_code=code)

        def attempt() -> tuple[DiningSession, SessionGuest]:
            with self._uow_factory() as uow:
                session = uow.sessions.get_by_code(code)
                if session is None or session.status != SessionStatus.ACTIVE:
                    raise NotFoundError(
                        f"no active session with code {code}", session_code=code
                    )
                return self._admit(uow, session, request_dto.name, request_dto.phone)

        session, guest = run_with_retry(attempt, "join_session_by_code")
        return self._announce("session.guest_joined", session, guest, trace_ctx)
