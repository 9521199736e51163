from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


def _to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(part.capitalize() for part in parts[1:])


class CamelBaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )


class StartSessionRequest(CamelBaseModel):
    host_name: str = Field(min_length=1, max_length=100)
    host_phone: str | None = Field(default=None, max_length=30)
    special_requests: str | None = Field(default=None, max_length=1000)


class JoinTableRequest(CamelBaseModel):
    name: str = Field(min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=30)


class JoinByCodeRequest(JoinTableRequest):
    session_code: str = Field(min_length=6, max_length=6)


class AddCartItemRequest(CamelBaseModel):
    menu_item_id: str
    quantity: int = 1
    variation_id: str | None = None
    notes: str | None = Field(default=None, max_length=1000)


class UpdateCartItemRequest(CamelBaseModel):
    quantity: int
    notes: str | None = Field(default=None, max_length=1000)


class SubmitOrderRequest(CamelBaseModel):
    order_type: str = "DINE_IN"


class SetTipRequest(CamelBaseModel):
    amount_cents: int


class PreviewDiscountRequest(CamelBaseModel):
    code: str = Field(min_length=1)
    amount_cents: int = Field(ge=0)


class ApplyVoucherRequest(CamelBaseModel):
    code: str = Field(min_length=1)


class ComputeSplitsRequest(CamelBaseModel):
    split_type: str
    percentages: dict[str, Decimal] | None = None
    amounts_cents: dict[str, int] | None = None


class RecordSplitPaymentRequest(CamelBaseModel):
    outcome: str
    payment_method: str | None = Field(default=None, max_length=50)


class SetTableStatusRequest(CamelBaseModel):
    status: str
