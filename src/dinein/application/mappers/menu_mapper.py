from __future__ import annotations

from dinein.application.dto.responses import (
    MenuItemResponse,
    MenuItemVariationResponse,
    MenuResponse,
)
from dinein.application.mappers.money_mapper import to_money_response
from dinein.domain.menu.entities import Menu, MenuItem


def _to_item_response(item: MenuItem) -> MenuItemResponse:
    variations = []
    for variation in item.variations:
        if not variation.is_active:
            continue
        _, price = item.quote(variation.variation_id)
        variations.append(
            MenuItemVariationResponse(
                variationId=str(variation.variation_id),
                name=variation.name,
                priceMoney=to_money_response(price),
            )
        )
    return MenuItemResponse(
        itemId=str(item.item_id),
        name=item.name,
        description=item.description,
        priceMoney=to_money_response(item.price_money),
        categoryId=item.category_id,
        preparationTimeMinutes=item.preparation_time_minutes,
        variations=variations,
    )


def to_guest_menu_response(menu: Menu) -> MenuResponse:
    """Only what a guest can order: available items and their active variations."""
    return MenuResponse(
        menuId=str(menu.menu_id),
        restaurantId=str(menu.restaurant_id),
        menuVersion=menu.version,
        categories=menu.categories,
        items=[_to_item_response(item) for item in menu.items if item.is_available],
        updatedAt=menu.updated_at,
    )
