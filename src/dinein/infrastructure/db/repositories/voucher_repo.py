from __future__ import annotations

from decimal import Decimal

from sqlalchemy import case, or_, select, update
from sqlalchemy.orm import Session

from dinein.application.ports.repositories import VoucherRepository
from dinein.domain.billing.vouchers import Voucher, VoucherStatus, VoucherType
from dinein.domain.common.ids import RestaurantId, VoucherId
from dinein.domain.common.money import Money
from dinein.infrastructure.db.models.voucher import VoucherModel
from dinein.infrastructure.db.repositories.common import as_utc


class SqlAlchemyVoucherRepository(VoucherRepository):
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_code(self, restaurant_id: RestaurantId, code: str) -> Voucher | None:
        statement = (
            select(VoucherModel)
            .where(
                VoucherModel.restaurant_id == str(restaurant_id),
                VoucherModel.code == code,
            )
            .execution_options(populate_existing=True)
        )
        model = self._session.execute(statement).scalar_one_or_none()
        return self._to_domain(model) if model is not None else None

    def redeem(self, voucher_id: VoucherId) -> Voucher | None:
        used_after = VoucherModel.used_count + 1
        statement = (
            update(VoucherModel)
            .where(
                VoucherModel.id == str(voucher_id),
                VoucherModel.status == VoucherStatus.ACTIVE.value,
                or_(
                    VoucherModel.usage_limit.is_(None),
                    VoucherModel.used_count < VoucherModel.usage_limit,
                ),
            )
            .values(
                used_count=used_after,
                status=case(
                    (
                        VoucherModel.usage_limit.is_not(None)
                        & (used_after >= VoucherModel.usage_limit),
                        VoucherStatus.USED_UP.value,
                    ),
                    else_=VoucherModel.status,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(statement)
        if result.rowcount != 1:
            return None

        model = self._session.execute(
            select(VoucherModel)
            .where(VoucherModel.id == str(voucher_id))
            .execution_options(populate_existing=True)
        ).scalar_one()
        return self._to_domain(model)

    @staticmethod
    def _to_domain(model: VoucherModel) -> Voucher:
        currency = model.currency
        return Voucher(
            voucher_id=VoucherId(model.id),
            restaurant_id=RestaurantId(model.restaurant_id),
            code=model.code,
            voucher_type=VoucherType(model.voucher_type),
            discount_value=Decimal(model.discount_value),
            currency=currency,
            status=VoucherStatus(model.status),
            minimum_order_amount=(
                Money(amount_cents=model.minimum_order_cents, currency=currency)
                if model.minimum_order_cents is not None
                else None
            ),
            maximum_discount_amount=(
                Money(amount_cents=model.maximum_discount_cents, currency=currency)
                if model.maximum_discount_cents is not None
                else None
            ),
            valid_from=as_utc(model.valid_from),
            expires_at=as_utc(model.expires_at),
            usage_limit=model.usage_limit,
            used_count=model.used_count,
        )
