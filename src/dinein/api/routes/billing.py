from __future__ import annotations

from fastapi import APIRouter

from dinein.api import dependencies as deps
from dinein.application.dto.requests import (
    ApplyVoucherRequest,
    ComputeSplitsRequest,
    PreviewDiscountRequest,
    RecordSplitPaymentRequest,
)
from dinein.application.dto.responses import (
    BillSplitsResponse,
    DiscountPreviewResponse,
    OrderResponse,
)
from dinein.application.use_cases.billing import (
    ApplyVoucher,
    ComputeSplits,
    PreviewDiscount,
    RecordSplitPayment,
)
from dinein.domain.common.ids import BillSplitId, OrderId, RestaurantId, SessionId

router = APIRouter()


@router.post(
    "/v1/restaurants/{restaurant_id}/vouchers/preview",
    response_model=DiscountPreviewResponse,
)
def preview_discount(
    restaurant_id: str,
    request_dto: PreviewDiscountRequest,
) -> DiscountPreviewResponse:
    return PreviewDiscount(uow_factory=deps.unit_of_work).execute(
        restaurant_id=RestaurantId(restaurant_id),
        request_dto=request_dto,
    )


@router.post("/v1/orders/{order_id}/voucher", response_model=OrderResponse)
def apply_voucher(order_id: str, request_dto: ApplyVoucherRequest) -> OrderResponse:
    use_case = ApplyVoucher(
        uow_factory=deps.unit_of_work,
        restaurant_repository=deps.restaurant_repository(),
        publisher=deps.event_publisher(),
    )
    return use_case.execute(
        order_id=OrderId(order_id),
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )


@router.post("/v1/sessions/{session_id}/splits", response_model=BillSplitsResponse)
def compute_splits(session_id: str, request_dto: ComputeSplitsRequest) -> BillSplitsResponse:
    use_case = ComputeSplits(uow_factory=deps.unit_of_work, publisher=deps.event_publisher())
    return use_case.execute(
        session_id=SessionId(session_id),
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )


@router.post(
    "/v1/sessions/{session_id}/splits/{split_id}/payment",
    response_model=BillSplitsResponse,
)
def record_split_payment(
    session_id: str,
    split_id: str,
    request_dto: RecordSplitPaymentRequest,
) -> BillSplitsResponse:
    use_case = RecordSplitPayment(uow_factory=deps.unit_of_work, publisher=deps.event_publisher())
    return use_case.execute(
        session_id=SessionId(session_id),
        split_id=BillSplitId(split_id),
        request_dto=request_dto,
        trace_ctx=deps.current_trace_context(),
    )
