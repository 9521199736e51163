from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from dinein.domain.common.ids import RestaurantId
from dinein.domain.common.money import Money
from dinein.domain.order.pricing import PricingPolicy


@dataclass(frozen=True)
class RestaurantSettings:
    restaurant_id: RestaurantId
    name: str
    currency: str
    tax_rate: Decimal
    service_charge_rate: Decimal
    delivery_fee: Money | None

    def __post_init__(self) -> None:
        if self.tax_rate < 0 or self.service_charge_rate < 0:
            raise ValueError("rates must be >= 0")
        if self.delivery_fee is not None and self.delivery_fee.currency != self.currency:
            raise ValueError("delivery_fee currency must match restaurant currency")

    def pricing_policy(self) -> PricingPolicy:
        return PricingPolicy(
            currency=self.currency,
            tax_rate=self.tax_rate,
            service_charge_rate=self.service_charge_rate,
            delivery_fee=self.delivery_fee,
        )
