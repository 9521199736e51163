from __future__ import annotations

import logging

from dinein.application.dto.responses import JoinedSessionResponse, SessionResponse
from dinein.application.mappers.event_envelope import serialize_session_event
from dinein.application.mappers.session_mapper import (
    to_joined_session_response,
    to_session_response,
)
from dinein.application.ports.clock import Clock, utc_now
from dinein.application.ports.publisher import EventPublisher
from dinein.application.ports.repositories import RestaurantRepository
from dinein.application.use_cases.context import TraceContext
from dinein.application.use_cases.support import (
    UnitOfWorkFactory,
    load_settings,
    publish_event,
    require_session_for_token,
    run_with_retry,
)
from dinein.domain.session.entities import DiningSession, SessionGuest

logger = logging.getLogger(__name__)


class ResolveGuest:
    """Look up the guest behind a join token and mark them as active."""

    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    def execute(self, join_token: str) -> JoinedSessionResponse:
        def attempt() -> tuple[DiningSession, SessionGuest]:
            with self._uow_factory() as uow:
                session = require_session_for_token(uow, join_token)
                guest = session.require_guest(join_token)
                saved = uow.sessions.update(session.touch(guest.guest_id, self._clock()))
                uow.commit()
                return saved, guest

        session, guest = run_with_retry(attempt, "resolve_guest")
        return to_joined_session_response(session, guest, self._clock())


class LeaveSession:
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

    def execute(self, join_token: str, trace_ctx: TraceContext) -> SessionResponse:
        def attempt() -> tuple[DiningSession, SessionGuest]:
            with self._uow_factory() as uow:
                session = require_session_for_token(uow, join_token)
                guest = session.require_guest(join_token)
                policy = load_settings(
                    self._restaurant_repository, session.restaurant_id
                ).pricing_policy()
                remaining = session.remove_guest(guest.guest_id).recalculate_total(
                    uow.orders.list_for_session(session.session_id), policy
                )
                saved = uow.sessions.update(remaining)
                uow.commit()
                return saved, guest

        session, guest = run_with_retry(attempt, "leave_session")
        now = self._clock()
        logger.info(
            "guest_left",
            extra={
                "session_id": str(session.session_id),
                "guest_id": str(guest.guest_id),
                "guest_count": session.guest_count,
            },
        )
        message = serialize_session_event(
            event_type="session.guest_left",
            occurred_at=now,
            session=session,
            trace_id=trace_ctx.trace_id,
            request_id=trace_ctx.request_id,
            extra={"guestId": str(guest.guest_id)},
        )
        publish_event(self._publisher, str(session.restaurant_id), message)
        return to_session_response(session, now)
