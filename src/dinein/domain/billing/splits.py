from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Mapping, Sequence

from dinein.domain.common.codes import new_id
from dinein.domain.common.errors import InvalidStateError, ValidationError
from dinein.domain.common.ids import BillSplitId, GuestId
from dinein.domain.common.money import Money
from dinein.domain.order.entities import PaymentStatus

_HUNDRED = Decimal(100)


class SplitType(str, Enum):
    EQUAL = "EQUAL"
    PERCENTAGE = "PERCENTAGE"
    CUSTOM = "CUSTOM"
    ITEM_BASED = "ITEM_BASED"


class SplitPaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    FAILED = "FAILED"


RECORDABLE_OUTCOMES = frozenset(
    {SplitPaymentStatus.PAID, SplitPaymentStatus.PARTIALLY_PAID, SplitPaymentStatus.FAILED}
)


@dataclass(frozen=True)
class BillSplit:
    split_id: BillSplitId
    guest_id: GuestId
    split_type: SplitType
    amount: Money
    percentage: Decimal | None = None
    payment_status: SplitPaymentStatus = SplitPaymentStatus.PENDING
    payment_method: str | None = None
    paid_at: datetime | None = None

    def has_payment(self) -> bool:
        return self.payment_status in (SplitPaymentStatus.PAID, SplitPaymentStatus.PARTIALLY_PAID)

    def record(
        self, outcome: SplitPaymentStatus, payment_method: str | None, now: datetime
    ) -> BillSplit:
        if outcome not in RECORDABLE_OUTCOMES:
            raise ValidationError(
                f"cannot record payment outcome {outcome.value}",
                split_id=self.split_id,
                outcome=outcome.value,
            )
        if self.payment_status == SplitPaymentStatus.PAID:
            if outcome == SplitPaymentStatus.PAID:
                return self
            raise InvalidStateError(
                f"split {self.split_id} is already paid",
                split_id=self.split_id,
                outcome=outcome.value,
                reason="SPLIT_ALREADY_PAID",
            )
        paid_at = now if outcome == SplitPaymentStatus.PAID else self.paid_at
        return replace(
            self,
            payment_status=outcome,
            payment_method=payment_method or self.payment_method,
            paid_at=paid_at,
        )


def aggregate_payment_status(splits: Sequence[BillSplit]) -> PaymentStatus:
    if splits and all(split.payment_status == SplitPaymentStatus.PAID for split in splits):
        return PaymentStatus.PAID
    if any(split.has_payment() for split in splits):
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PENDING


def split_equally(total: Money, parts: int) -> list[Money]:
    """Divide ``total`` evenly; leftover cents go one each to the first parts."""
    if parts < 1:
        raise ValidationError("cannot split a bill between zero guests")
    share, remainder = divmod(total.amount_cents, parts)
    return [
        Money(amount_cents=share + (1 if index < remainder else 0), currency=total.currency)
        for index in range(parts)
    ]


def allocate_by_weights(total: Money, weights: Sequence[Decimal]) -> list[Money]:
    """Largest-remainder allocation of ``total`` proportional to ``weights``."""
    weight_sum = sum(weights, Decimal(0))
    if weight_sum <= 0:
        return split_equally(total, len(weights))

    exact = [Decimal(total.amount_cents) * weight / weight_sum for weight in weights]
    floors = [int(value) for value in exact]
    leftover = total.amount_cents - sum(floors)
    by_fraction = sorted(
        range(len(weights)), key=lambda index: (exact[index] - floors[index]), reverse=True
    )
    for index in by_fraction[:leftover]:
        floors[index] += 1
    return [Money(amount_cents=cents, currency=total.currency) for cents in floors]


def split_by_percentage(
    total: Money, percentages: Mapping[GuestId, Decimal]
) -> list[tuple[GuestId, Money, Decimal]]:
    if any(pct < 0 for pct in percentages.values()):
        raise ValidationError("split percentages must be >= 0")
    pct_sum = sum(percentages.values(), Decimal(0))
    if pct_sum != _HUNDRED:
        raise ValidationError(
            "split percentages must sum to 100",
            percentage_sum=str(pct_sum.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
        )
    guest_ids = list(percentages)
    amounts = allocate_by_weights(total, [percentages[guest_id] for guest_id in guest_ids])
    return [
        (guest_id, amount, percentages[guest_id])
        for guest_id, amount in zip(guest_ids, amounts)
    ]


def split_custom(total: Money, amounts: Mapping[GuestId, Money]) -> list[tuple[GuestId, Money]]:
    for amount in amounts.values():
        if amount.currency != total.currency:
            raise ValidationError(
                "split amount currency must match the bill",
                currency=amount.currency,
            )
    provided = sum(amount.amount_cents for amount in amounts.values())
    if provided != total.amount_cents:
        raise ValidationError(
            "custom split amounts must sum to the session total",
            provided_cents=provided,
            total_cents=total.amount_cents,
        )
    return list(amounts.items())


def split_by_items(
    total: Money, item_totals: Mapping[GuestId, Money]
) -> list[tuple[GuestId, Money]]:
    """Each guest pays for their own items plus a pro-rata share of the extras.

    Tax, service charge, discount and tip are spread in proportion to each
    guest's item subtotal, so the shares still sum to ``total``.
    """
    guest_ids = list(item_totals)
    if not guest_ids:
        raise ValidationError("cannot split a bill between zero guests")
    weights = [Decimal(item_totals[guest_id].amount_cents) for guest_id in guest_ids]
    return list(zip(guest_ids, allocate_by_weights(total, weights)))


def build_splits(
    split_type: SplitType,
    total: Money,
    guest_ids: Sequence[GuestId],
    *,
    percentages: Mapping[GuestId, Decimal] | None = None,
    amounts: Mapping[GuestId, Money] | None = None,
    item_totals: Mapping[GuestId, Money] | None = None,
) -> list[BillSplit]:
    """Allocate ``total`` between guests; the resulting amounts always sum to it."""
    known = set(guest_ids)

    def _check_guests(keys: Iterable[GuestId]) -> None:
        unknown = sorted(str(key) for key in keys if key not in known)
        if unknown:
            raise ValidationError("split names guests outside the session", guest_ids=unknown)

    def _split(guest_id: GuestId, amount: Money, pct: Decimal | None = None) -> BillSplit:
        return BillSplit(
            split_id=BillSplitId(new_id("spl")),
            guest_id=guest_id,
            split_type=split_type,
            amount=amount,
            percentage=pct,
        )

    if split_type == SplitType.EQUAL:
        shares = split_equally(total, len(guest_ids))
        return [_split(guest_id, share) for guest_id, share in zip(guest_ids, shares)]

    if split_type == SplitType.PERCENTAGE:
        if not percentages:
            raise ValidationError("percentage split needs a percentage per guest")
        _check_guests(percentages)
        return [
            _split(guest_id, amount, pct)
            for guest_id, amount, pct in split_by_percentage(total, percentages)
        ]

    if split_type == SplitType.CUSTOM:
        if not amounts:
            raise ValidationError("custom split needs an amount per guest")
        _check_guests(amounts)
        return [_split(guest_id, amount) for guest_id, amount in split_custom(total, amounts)]

    per_guest = {
        guest_id: (item_totals or {}).get(guest_id, Money.zero(total.currency))
        for guest_id in guest_ids
    }
    return [_split(guest_id, amount) for guest_id, amount in split_by_items(total, per_guest)]
