from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum

from dinein.domain.common.errors import InvalidStateError
from dinein.domain.common.ids import RestaurantId, VoucherId
from dinein.domain.common.money import Money, money_from_decimal

_HUNDRED = Decimal(100)


class VoucherType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class VoucherStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"
    USED_UP = "USED_UP"


@dataclass(frozen=True)
class Voucher:
    voucher_id: VoucherId
    restaurant_id: RestaurantId
    code: str
    voucher_type: VoucherType
    discount_value: Decimal
    currency: str
    status: VoucherStatus = VoucherStatus.ACTIVE
    minimum_order_amount: Money | None = None
    maximum_discount_amount: Money | None = None
    valid_from: datetime | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = None
    used_count: int = 0

    def __post_init__(self) -> None:
        if not self.code.strip():
            raise ValueError("code must be non-empty")
        if self.discount_value < 0:
            raise ValueError("discount_value must be >= 0")
        if self.voucher_type == VoucherType.PERCENTAGE and self.discount_value > _HUNDRED:
            raise ValueError("percentage discount must be <= 100")
        if self.usage_limit is not None and self.usage_limit < 0:
            raise ValueError("usage_limit must be >= 0")
        if self.used_count < 0:
            raise ValueError("used_count must be >= 0")

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def has_started(self, now: datetime) -> bool:
        return self.valid_from is None or now >= self.valid_from

    def is_usage_limit_reached(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def is_active(self, now: datetime) -> bool:
        return (
            self.status == VoucherStatus.ACTIVE
            and self.has_started(now)
            and not self.is_expired(now)
            and not self.is_usage_limit_reached()
        )

    def is_valid_for_order(self, amount: Money, now: datetime) -> bool:
        return self.rejection_reason(amount, now) is None

    def rejection_reason(self, amount: Money, now: datetime) -> str | None:
        if self.status != VoucherStatus.ACTIVE:
            return self.status.value
        if not self.has_started(now):
            return "NOT_STARTED"
        if self.is_expired(now):
            return VoucherStatus.EXPIRED.value
        if self.is_usage_limit_reached():
            return VoucherStatus.USED_UP.value
        if amount.currency != self.currency:
            return "CURRENCY_MISMATCH"
        if (
            self.minimum_order_amount is not None
            and amount.amount_cents < self.minimum_order_amount.amount_cents
        ):
            return "MINIMUM_NOT_MET"
        return None

    def calculate_discount(self, amount: Money, now: datetime) -> Money:
        """Discount this voucher grants on ``amount``; zero when it does not apply."""
        if self.rejection_reason(amount, now) is not None:
            return Money.zero(amount.currency)

        if self.voucher_type == VoucherType.PERCENTAGE:
            discount = amount.apply_rate(self.discount_value / _HUNDRED)
        else:
            discount = money_from_decimal(self.discount_value, self.currency)

        if self.maximum_discount_amount is not None:
            discount = discount.min(self.maximum_discount_amount)
        return discount.min(amount)

    def redeemed(self) -> Voucher:
        if self.is_usage_limit_reached():
            raise InvalidStateError(
                f"voucher {self.code} has reached its usage limit",
                code=self.code,
                used_count=self.used_count,
                usage_limit=self.usage_limit,
            )
        used_count = self.used_count + 1
        status = self.status
        if self.usage_limit is not None and used_count >= self.usage_limit:
            status = VoucherStatus.USED_UP
        return replace(self, used_count=used_count, status=status)
