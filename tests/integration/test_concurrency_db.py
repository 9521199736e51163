from __future__ import annotations

import concurrent.futures
import sys
import threading
from pathlib import Path

from sqlalchemy.orm import Session

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from dinein.application.dto.requests import (
    AddCartItemRequest,
    ApplyVoucherRequest,
    StartSessionRequest,
    SubmitOrderRequest,
)
from dinein.application.use_cases.billing import ApplyVoucher
from dinein.application.use_cases.cart import AddToCart
from dinein.application.use_cases.context import EMPTY_TRACE
from dinein.application.use_cases.start_session import StartSession
from dinein.application.use_cases.submit_order import SubmitOrder
from dinein.domain.common.errors import ConflictError, InvalidStateError
from dinein.domain.common.ids import OrderId, RestaurantId, SessionId, TableId
from dinein.infrastructure.db.repositories.menu_repo import SqlAlchemyMenuRepository
from dinein.infrastructure.db.repositories.restaurant_repo import SqlAlchemyRestaurantRepository
from dinein.infrastructure.db.repositories.voucher_repo import SqlAlchemyVoucherRepository
from dinein.infrastructure.db.session import get_engine
from dinein.infrastructure.db.unit_of_work import SqlAlchemyUnitOfWork
from dinein.infrastructure.messaging.redis_publisher import RedisEventPublisher

RESTAURANT = RestaurantId("rst_001")


def _writer_args() -> dict[str, object]:
    return {
        "uow_factory": SqlAlchemyUnitOfWork,
        "restaurant_repository": SqlAlchemyRestaurantRepository(),
        "publisher": RedisEventPublisher(),
    }


def _start(table_id: str, host_name: str):
    return StartSession(**_writer_args()).execute(
        restaurant_id=RESTAURANT,
        table_id=TableId(table_id),
        request_dto=StartSessionRequest(host_name=host_name),
        trace_ctx=EMPTY_TRACE,
    )


def _order_of_two_pizzas(table_id: str) -> OrderId:
    joined = _start(table_id, "Ana")
    session_id = SessionId(joined.session.sessionId)
    AddToCart(menu_repository=SqlAlchemyMenuRepository(), **_writer_args()).execute(
        session_id=session_id,
        join_token=joined.joinToken,
        request_dto=AddCartItemRequest(menu_item_id="itm_001", quantity=2),
        trace_ctx=EMPTY_TRACE,
    )
    order = SubmitOrder(**_writer_args()).execute(
        session_id=session_id,
        join_token=joined.joinToken,
        request_dto=SubmitOrderRequest(),
        trace_ctx=EMPTY_TRACE,
    )
    return OrderId(order.orderId)


def test_concurrent_starts_leave_one_live_session_per_table() -> None:
    barrier = threading.Barrier(6)

    def _start_once(index: int) -> str:
        barrier.wait()
        try:
            return _start("tbl_004", f"Guest {index}").session.sessionId
        except ConflictError:
            return "CONFLICT"

    with concurrent.futures.ThreadPoolExecutor(max_workers=6) as executor:
        results = list(executor.map(_start_once, range(6)))

    winners = [result for result in results if result != "CONFLICT"]
    assert len(winners) == 1

    with SqlAlchemyUnitOfWork() as uow:
        table = uow.tables.get(table_id=TableId("tbl_004"), restaurant_id=RESTAURANT)
        live = uow.sessions.list_active(RESTAURANT)
    assert table is not None
    assert table.current_session_id == winners[0]
    assert [session.session_id for session in live] == winners


def test_single_use_voucher_is_redeemed_once_under_race() -> None:
    order_ids = [_order_of_two_pizzas("tbl_002"), _order_of_two_pizzas("tbl_003")]
    barrier = threading.Barrier(2)

    def _apply(order_id: OrderId) -> str:
        barrier.wait()
        try:
            ApplyVoucher(**_writer_args()).execute(
                order_id, ApplyVoucherRequest(code="FIVEOFF"), EMPTY_TRACE
            )
            return "APPLIED"
        except (ConflictError, InvalidStateError):
            return "REJECTED"

    with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
        results = list(executor.map(_apply, order_ids))

    assert sorted(results) == ["APPLIED", "REJECTED"]
    with Session(get_engine()) as session:
        voucher = SqlAlchemyVoucherRepository(session).get_by_code(RESTAURANT, "FIVEOFF")
    assert voucher is not None
    assert voucher.used_count == 1
