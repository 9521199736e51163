from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from dinein.application.dto.requests import SetTipRequest
from dinein.application.dto.responses import SessionResponse
from dinein.application.mappers.event_envelope import serialize_session_event
from dinein.application.mappers.session_mapper import to_session_response
from dinein.application.metrics.lifecycle import record_session_closed
from dinein.application.ports.clock import Clock, utc_now
from dinein.application.ports.publisher import EventPublisher
from dinein.application.ports.repositories import RestaurantRepository, UnitOfWork
from dinein.application.use_cases.context import TraceContext
from dinein.application.use_cases.support import (
    UnitOfWorkFactory,
    load_settings,
    publish_event,
    require_session,
    run_with_retry,
)
from dinein.domain.common.errors import InvalidStateError, ValidationError
from dinein.domain.common.ids import SessionId
from dinein.domain.common.money import Money
from dinein.domain.session.entities import DiningSession, SessionGuest

logger = logging.getLogger(__name__)

SessionChange = Callable[[UnitOfWork, DiningSession, datetime], DiningSession]


class _SessionCommand:
    event_type = "session.updated"

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

    def _mutate(
        self,
        session_id: SessionId,
        change: SessionChange,
        trace_ctx: TraceContext,
    ) -> SessionResponse:
        def attempt() -> tuple[DiningSession, bool]:
            with self._uow_factory() as uow:
                session = require_session(uow, session_id)
                updated = change(uow, session, self._clock())
                if updated == session:
                    return session, False
                saved = uow.sessions.update(updated)
                uow.commit()
                return saved, True

        session, changed = run_with_retry(attempt, type(self).__name__)
        now = self._clock()
        if changed:
            self._after_change(session, now)
            message = serialize_session_event(
                event_type=self.event_type,
                occurred_at=now,
                session=session,
                trace_id=trace_ctx.trace_id,
                request_id=trace_ctx.request_id,
            )
            publish_event(self._publisher, str(session.restaurant_id), message)
        return to_session_response(session, now)

    def _after_change(self, session: DiningSession, now: datetime) -> None:
        logger.info(
            "session_status_changed",
            extra={
                "session_id": str(session.session_id),
                "status": session.status.value,
                "event_type": self.event_type,
            },
        )

    def _touch_guest(
        self, session: DiningSession, join_token: str | None, now: datetime
    ) -> tuple[DiningSession, SessionGuest | None]:
        if join_token is None:
            return session, None
        guest = session.require_guest(join_token)
        return session.touch(guest.guest_id, now), guest


class PauseSession(_SessionCommand):
    event_type = "session.paused"

    def execute(self, session_id: SessionId, trace_ctx: TraceContext) -> SessionResponse:
        return self._mutate(session_id, lambda uow, session, now: session.pause(), trace_ctx)


class ResumeSession(_SessionCommand):
    event_type = "session.resumed"

    def execute(self, session_id: SessionId, trace_ctx: TraceContext) -> SessionResponse:
        return self._mutate(session_id, lambda uow, session, now: session.resume(), trace_ctx)


class RequestPayment(_SessionCommand):
    """Freeze the bill. Guests may ask for it only through the host."""

    event_type = "session.payment_requested"

    def execute(
        self,
        session_id: SessionId,
        trace_ctx: TraceContext,
        join_token: str | None = None,
    ) -> SessionResponse:
        def change(uow: UnitOfWork, session: DiningSession, now: datetime) -> DiningSession:
            session, guest = self._touch_guest(session, join_token, now)
            if guest is not None and not guest.is_host:
                raise InvalidStateError(
                    "only the host can request the bill",
                    session_id=session.session_id,
                    guest_id=guest.guest_id,
                    reason="HOST_ONLY",
                )
            policy = load_settings(
                self._restaurant_repository, session.restaurant_id
            ).pricing_policy()
            orders = uow.orders.list_for_session(session.session_id)
            return session.request_payment(orders, policy)

        return self._mutate(session_id, change, trace_ctx)


class _CloseSession(_SessionCommand):
    def _close(
        self, uow: UnitOfWork, session: DiningSession, closed: DiningSession, now: datetime
    ) -> DiningSession:
        table = uow.tables.get(table_id=session.table_id, restaurant_id=session.restaurant_id)
        if table is not None and table.current_session_id == session.session_id:
            uow.tables.update(table.release(now))
        return closed

    def _after_change(self, session: DiningSession, now: datetime) -> None:
        record_session_closed(session, now)
        logger.info(
            "session_closed",
            extra={
                "session_id": str(session.session_id),
                "table_id": str(session.table_id),
                "status": session.status.value,
            },
        )


class CompleteSession(_CloseSession):
    event_type = "session.completed"

    def execute(self, session_id: SessionId, trace_ctx: TraceContext) -> SessionResponse:
        return self._mutate(
            session_id,
            lambda uow, session, now: self._close(uow, session, session.complete(now), now),
            trace_ctx,
        )


class CancelSession(_CloseSession):
    event_type = "session.cancelled"

    def execute(self, session_id: SessionId, trace_ctx: TraceContext) -> SessionResponse:
        return self._mutate(
            session_id,
            lambda uow, session, now: self._close(uow, session, session.cancel(now), now),
            trace_ctx,
        )


class CallWaiter(_SessionCommand):
    event_type = "session.waiter_called"

    def execute(
        self,
        session_id: SessionId,
        trace_ctx: TraceContext,
        join_token: str | None = None,
    ) -> SessionResponse:
        def change(uow: UnitOfWork, session: DiningSession, now: datetime) -> DiningSession:
            session, _ = self._touch_guest(session, join_token, now)
            return session.call_waiter(now)

        return self._mutate(session_id, change, trace_ctx)

    def _after_change(self, session: DiningSession, now: datetime) -> None:
        logger.info("waiter_called", extra={"session_id": str(session.session_id)})


class WaiterResponded(_SessionCommand):
    event_type = "session.waiter_responded"

    def execute(self, session_id: SessionId, trace_ctx: TraceContext) -> SessionResponse:
        return self._mutate(
            session_id, lambda uow, session, now: session.waiter_responded(now), trace_ctx
        )

    def _after_change(self, session: DiningSession, now: datetime) -> None:
        logger.info("waiter_responded", extra={"session_id": str(session.session_id)})


class SetTip(_SessionCommand):
    event_type = "session.tip_updated"

    def execute(
        self,
        session_id: SessionId,
        request_dto: SetTipRequest,
        trace_ctx: TraceContext,
        join_token: str | None = None,
    ) -> SessionResponse:
        if request_dto.amount_cents < 0:
            raise ValidationError("tip must be >= 0", amount_cents=request_dto.amount_cents)

        def change(uow: UnitOfWork, session: DiningSession, now: datetime) -> DiningSession:
            session, _ = self._touch_guest(session, join_token, now)
            policy = load_settings(
                self._restaurant_repository, session.restaurant_id
            ).pricing_policy()
            tip = Money(amount_cents=request_dto.amount_cents, currency=session.currency)
            return session.set_tip(tip, uow.orders.list_for_session(session.session_id), policy)

        return self._mutate(session_id, change, trace_ctx)

    def _after_change(self, session: DiningSession, now: datetime) -> None:
        logger.info(
            "session_tip_updated",
            extra={
                "session_id": str(session.session_id),
                "tip_cents": session.tip_amount.amount_cents,
            },
        )
