from __future__ import annotations

from datetime import timezone

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, selectinload

from dinein.application.ports.repositories import MenuRepository
from dinein.domain.common.ids import MenuId, MenuItemId, RestaurantId, VariationId
from dinein.domain.common.money import Money
from dinein.domain.menu.entities import Menu, MenuItem, MenuItemVariation
from dinein.infrastructure.db.models.menu import MenuItemModel, MenuModel
from dinein.infrastructure.db.session import get_engine


class SqlAlchemyMenuRepository(MenuRepository):
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine or get_engine()

    def get_menu_by_restaurant_id(self, restaurant_id: RestaurantId) -> Menu | None:
        statement = (
            select(MenuModel)
            .options(selectinload(MenuModel.items).selectinload(MenuItemModel.variations))
            .where(MenuModel.restaurant_id == str(restaurant_id))
            .order_by(MenuModel.version.desc())
            .limit(1)
        )

        with Session(self._engine) as session:
            menu_model = session.execute(statement).scalar_one_or_none()
            if menu_model is None:
                return None
            items = [self._item_to_domain(item) for item in menu_model.items]

        updated_at = menu_model.updated_at
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)

        categories = sorted({item.category_id for item in items if item.category_id})
        return Menu(
            menu_id=MenuId(menu_model.id),
            restaurant_id=RestaurantId(menu_model.restaurant_id),
            version=menu_model.version,
            categories=categories,
            items=items,
            updated_at=updated_at,
        )

    @staticmethod
    def _item_to_domain(item: MenuItemModel) -> MenuItem:
        return MenuItem(
            item_id=MenuItemId(item.id),
            name=item.name,
            description=item.description,
            price_money=Money(amount_cents=item.price_cents, currency=item.currency),
            is_available=item.is_available,
            category_id=item.category_id,
            preparation_time_minutes=item.preparation_time_minutes,
            variations=[
                MenuItemVariation(
                    variation_id=VariationId(variation.id),
                    name=variation.name,
                    price_adjustment_cents=variation.price_adjustment_cents,
                    is_active=variation.is_active,
                )
                for variation in item.variations
            ],
        )
