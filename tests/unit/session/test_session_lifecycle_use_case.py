from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from dinein.application.dto.requests import SetTipRequest
from dinein.application.use_cases.context import EMPTY_TRACE
from dinein.application.use_cases.guests import LeaveSession, ResolveGuest
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
from dinein.domain.common.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dinein.domain.common.ids import SessionId
from dinein.domain.table.entities import TableStatus
from fakes import Deps, add_to_cart, join_table, start_session, submit_order


def test_pause_and_resume_publish_only_real_changes(deps: Deps) -> None:
    session_id = SessionId(start_session(deps).session.sessionId)

    assert ResumeSession(*deps.writer_args()).execute(session_id, EMPTY_TRACE).status == "ACTIVE"
    assert PauseSession(*deps.writer_args()).execute(session_id, EMPTY_TRACE).status == "PAUSED"
    assert ResumeSession(*deps.writer_args()).execute(session_id, EMPTY_TRACE).status == "ACTIVE"

    assert deps.publisher.event_types() == [
        "session.started",
        "session.paused",
        "session.resumed",
    ]


def test_unknown_session_is_not_found(deps: Deps) -> None:
    with pytest.raises(NotFoundError):
        PauseSession(*deps.writer_args()).execute(SessionId("ses_404"), EMPTY_TRACE)


def test_host_requests_payment_with_recomputed_total(deps: Deps) -> None:
    host = start_session(deps)
    session_id = host.session.sessionId
    add_to_cart(deps, session_id, host.joinToken)
    submit_order(deps, session_id, host.joinToken)

    response = RequestPayment(*deps.writer_args()).execute(
        SessionId(session_id), EMPTY_TRACE, join_token=host.joinToken
    )

    assert response.status == "AWAITING_PAYMENT"
    assert response.totalAmount.amountCents == 1080


def test_only_the_host_may_request_payment(deps: Deps) -> None:
    host = join_table(deps, "Ana")
    guest = join_table(deps, "Ben")

    with pytest.raises(InvalidStateError) as exc_info:
        RequestPayment(*deps.writer_args()).execute(
            SessionId(host.session.sessionId), EMPTY_TRACE, join_token=guest.joinToken
        )

    assert exc_info.value.details["reason"] == "HOST_ONLY"


def test_request_payment_twice_is_invalid(deps: Deps) -> None:
    session_id = SessionId(start_session(deps).session.sessionId)
    use_case = RequestPayment(*deps.writer_args())
    use_case.execute(session_id, EMPTY_TRACE)

    with pytest.raises(InvalidStateError):
        use_case.execute(session_id, EMPTY_TRACE)


@pytest.mark.parametrize(
    ("use_case_cls", "status", "event_type"),
    [
        (CompleteSession, "COMPLETED", "session.completed"),
        (CancelSession, "CANCELLED", "session.cancelled"),
    ],
)
def test_closing_a_session_releases_the_table(
    deps: Deps, use_case_cls: type, status: str, event_type: str
) -> None:
    session_id = SessionId(start_session(deps).session.sessionId)
    closed_at = deps.clock.advance(minutes=90)

    response = use_case_cls(*deps.writer_args()).execute(session_id, EMPTY_TRACE)

    assert response.status == status
    assert response.endedAt == closed_at
    table = deps.store.tables["tbl_001"]
    assert table.status == TableStatus.AVAILABLE
    assert table.current_session_id is None
    assert table.last_cleaned_at == closed_at
    assert deps.publisher.event_types()[-1] == event_type
    with pytest.raises(InvalidStateError):
        use_case_cls(*deps.writer_args()).execute(session_id, EMPTY_TRACE)


def test_table_can_host_a_new_session_after_completion(deps: Deps) -> None:
    first = start_session(deps)
    CompleteSession(*deps.writer_args()).execute(SessionId(first.session.sessionId), EMPTY_TRACE)

    second = start_session(deps, host="Bo")

    assert second.session.sessionId != first.session.sessionId
    assert deps.store.tables["tbl_001"].current_session_id == second.session.sessionId


def test_waiter_call_and_response(deps: Deps) -> None:
    host = start_session(deps)
    session_id = SessionId(host.session.sessionId)

    called = CallWaiter(*deps.writer_args()).execute(
        session_id, EMPTY_TRACE, join_token=host.joinToken
    )
    assert called.waiterCalled
    assert called.waiterCalledAt == deps.clock.now

    responded_at = deps.clock.advance(minutes=2)
    responded = WaiterResponded(*deps.writer_args()).execute(session_id, EMPTY_TRACE)
    assert not responded.waiterCalled
    assert responded.waiterRespondedAt == responded_at

    WaiterResponded(*deps.writer_args()).execute(session_id, EMPTY_TRACE)
    assert deps.publisher.event_types().count("session.waiter_responded") == 1


def test_set_tip_recomputes_total(deps: Deps) -> None:
    host = start_session(deps)
    session_id = SessionId(host.session.sessionId)
    add_to_cart(deps, session_id, host.joinToken, quantity=2)

    response = SetTip(*deps.writer_args()).execute(
        session_id, SetTipRequest(amount_cents=300), EMPTY_TRACE
    )

    assert response.tipAmount.amountCents == 300
    assert response.totalAmount.amountCents == 2160 + 300
    with pytest.raises(ValidationError):
        SetTip(*deps.writer_args()).execute(
            session_id, SetTipRequest(amount_cents=-1), EMPTY_TRACE
        )


def test_lost_update_is_retried_from_a_fresh_read(deps: Deps) -> None:
    session_id = SessionId(start_session(deps).session.sessionId)
    deps.store.session_conflicts_to_raise = 2

    response = PauseSession(*deps.writer_args()).execute(session_id, EMPTY_TRACE)

    assert response.status == "PAUSED"


def test_exhausted_retries_surface_as_conflict(deps: Deps) -> None:
    session_id = SessionId(start_session(deps).session.sessionId)
    deps.store.session_conflicts_to_raise = 3

    with pytest.raises(ConflictError) as exc_info:
        PauseSession(*deps.writer_args()).execute(session_id, EMPTY_TRACE)

    assert exc_info.value.details["attempts"] == 3
    assert deps.store.sessions[session_id].status.value == "ACTIVE"


def test_guest_leaves_with_their_cart_items(deps: Deps) -> None:
    host = join_table(deps, "Ana")
    guest = join_table(deps, "Ben")
    session_id = host.session.sessionId
    add_to_cart(deps, session_id, host.joinToken)
    add_to_cart(deps, session_id, guest.joinToken, menu_item_id="itm_003")

    response = LeaveSession(*deps.writer_args()).execute(guest.joinToken, EMPTY_TRACE)

    assert response.guestCount == 1
    assert [item.menuItemId for item in response.cart] == ["itm_001"]
    assert response.totalAmount.amountCents == 1080
    assert deps.publisher.event_types()[-1] == "session.guest_left"


def test_host_cannot_leave(deps: Deps) -> None:
    host = start_session(deps)

    with pytest.raises(InvalidStateError) as exc_info:
        LeaveSession(*deps.writer_args()).execute(host.joinToken, EMPTY_TRACE)

    assert exc_info.value.details["reason"] == "HOST_CANNOT_LEAVE"


def test_resolve_guest_marks_activity(deps: Deps) -> None:
    host = start_session(deps)
    later = deps.clock.advance(minutes=40)

    resolved = ResolveGuest(deps.uow_factory, deps.clock).execute(host.joinToken)

    assert resolved.guestId == host.guestId
    (guest,) = resolved.session.guests
    assert guest.lastActivityAt == later
    assert guest.recentlyActive
    with pytest.raises(NotFoundError):
        ResolveGuest(deps.uow_factory, deps.clock).execute("not-a-token")


def test_live_session_duration_runs_until_now(deps: Deps) -> None:
    session_id = SessionId(start_session(deps).session.sessionId)
    deps.clock.advance(minutes=5)

    session = deps.store.sessions[session_id]

    assert session.duration(deps.clock.now) == timedelta(minutes=5)
