from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from dinein.application.ports.repositories import RestaurantRepository
from dinein.domain.common.ids import RestaurantId
from dinein.domain.common.money import Money
from dinein.domain.restaurant.entities import RestaurantSettings
from dinein.infrastructure.db.models.menu import RestaurantModel
from dinein.infrastructure.db.session import get_engine


class SqlAlchemyRestaurantRepository(RestaurantRepository):
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine or get_engine()

    def get_settings(self, restaurant_id: RestaurantId) -> RestaurantSettings | None:
        statement = select(RestaurantModel).where(RestaurantModel.id == str(restaurant_id))
        with Session(self._engine) as session:
            model = session.execute(statement).scalar_one_or_none()

        if model is None:
            return None

        delivery_fee = None
        if model.delivery_fee_cents is not None:
            delivery_fee = Money(amount_cents=model.delivery_fee_cents, currency=model.currency)
        return RestaurantSettings(
            restaurant_id=RestaurantId(model.id),
            name=model.name,
            currency=model.currency,
            tax_rate=Decimal(model.tax_rate),
            service_charge_rate=Decimal(model.service_charge_rate),
            delivery_fee=delivery_fee,
        )
