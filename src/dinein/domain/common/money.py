from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

_CENTS = Decimal(100)


@dataclass(frozen=True)
class Money:
    amount_cents: int
    currency: str

    def __post_init__(self) -> None:
        if self.amount_cents < 0:
            raise ValueError("amount_cents must be >= 0")
        if len(self.currency) != 3 or not self.currency.isalpha() or not self.currency.isupper():
            raise ValueError("currency must be a 3-letter uppercase code")

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(amount_cents=0, currency=currency)

    def __add__(self, other: Money) -> Money:
        self._ensure_same_currency(other)
        return Money(amount_cents=self.amount_cents + other.amount_cents, currency=self.currency)

    def minus(self, other: Money) -> Money:
        self._ensure_same_currency(other)
        return Money(amount_cents=self.amount_cents - other.amount_cents, currency=self.currency)

    def times(self, quantity: int) -> Money:
        return Money(amount_cents=self.amount_cents * quantity, currency=self.currency)

    def apply_rate(self, rate: Decimal) -> Money:
        """Multiply by a decimal rate, rounding half-up to the minor unit."""
        scaled = (Decimal(self.amount_cents) * rate).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        return Money(amount_cents=int(scaled), currency=self.currency)

    def min(self, other: Money) -> Money:
        self._ensure_same_currency(other)
        return self if self.amount_cents <= other.amount_cents else other

    def to_decimal(self) -> Decimal:
        return Decimal(self.amount_cents) / _CENTS

    def _ensure_same_currency(self, other: Money) -> None:
        if other.currency != self.currency:
            raise ValueError(f"currency mismatch: {self.currency} != {other.currency}")


def money_from_decimal(amount: Decimal, currency: str) -> Money:
    cents = (amount * _CENTS).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return Money(amount_cents=int(cents), currency=currency)


def sum_money(values: Iterable[Money], currency: str) -> Money:
    total = Money.zero(currency)
    for value in values:
        total = total + value
    return total
