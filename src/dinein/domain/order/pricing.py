from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from dinein.domain.common.money import Money, sum_money


@dataclass(frozen=True)
class PricingPolicy:
    currency: str
    tax_rate: Decimal = Decimal("0")
    service_charge_rate: Decimal = Decimal("0")
    delivery_fee: Money | None = None


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Money
    tax: Money
    service_charge: Money
    delivery_fee: Money
    discount: Money
    total: Money

    def __post_init__(self) -> None:
        gross = self.gross
        if self.discount.amount_cents > gross.amount_cents:
            raise ValueError("discount must not exceed the order amount")
        if self.total != gross.minus(self.discount):
            raise ValueError("total must equal subtotal + tax + service + delivery - discount")

    @property
    def gross(self) -> Money:
        return self.subtotal + self.tax + self.service_charge + self.delivery_fee


def calculate_totals(
    line_totals: Iterable[Money],
    policy: PricingPolicy,
    is_delivery: bool = False,
    discount: Money | None = None,
) -> OrderTotals:
    """Recompute every order amount from the line totals.

    Always recalculates from scratch; callers never patch individual fields.
    """
    currency = policy.currency
    subtotal = sum_money(line_totals, currency)
    tax = subtotal.apply_rate(policy.tax_rate)
    service_charge = subtotal.apply_rate(policy.service_charge_rate)
    delivery_fee = Money.zero(currency)
    if is_delivery and policy.delivery_fee is not None:
        delivery_fee = policy.delivery_fee

    gross = subtotal + tax + service_charge + delivery_fee
    applied_discount = (discount or Money.zero(currency)).min(gross)
    return OrderTotals(
        subtotal=subtotal,
        tax=tax,
        service_charge=service_charge,
        delivery_fee=delivery_fee,
        discount=applied_discount,
        total=gross.minus(applied_discount),
    )
