from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from dinein.domain.common.errors import OrderingError
from dinein.domain.common.ids import MenuId, MenuItemId, RestaurantId, VariationId
from dinein.domain.common.money import Money

DEFAULT_PREPARATION_MINUTES = 15


@dataclass(frozen=True)
class MenuItemVariation:
    variation_id: VariationId
    name: str
    price_adjustment_cents: int
    is_active: bool = True


@dataclass(frozen=True)
class MenuItem:
    item_id: MenuItemId
    name: str
    description: str | None
    price_money: Money
    is_available: bool
    category_id: str | None = None
    preparation_time_minutes: int = DEFAULT_PREPARATION_MINUTES
    variations: list[MenuItemVariation] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("name must be non-empty")
        if self.preparation_time_minutes < 1:
            raise ValueError("preparation_time_minutes must be >= 1")

    def find_variation(self, variation_id: VariationId) -> MenuItemVariation | None:
        for variation in self.variations:
            if variation.variation_id == variation_id:
                return variation
        return None

    def quote(self, variation_id: VariationId | None) -> tuple[str, Money]:
        """Display name and unit price for this item, optionally with a variation."""
        if variation_id is None:
            return self.name, self.price_money

        variation = self.find_variation(variation_id)
        if variation is None or not variation.is_active:
            raise OrderingError(
                f"variation {variation_id} is not offered for menu item {self.item_id}",
                menu_item_id=self.item_id,
                variation_id=variation_id,
            )
        adjusted = self.price_money.amount_cents + variation.price_adjustment_cents
        if adjusted < 0:
            raise OrderingError(
                f"variation {variation_id} produces a negative price",
                menu_item_id=self.item_id,
                variation_id=variation_id,
            )
        price = Money(amount_cents=adjusted, currency=self.price_money.currency)
        return f"{self.name} ({variation.name})", price


@dataclass(frozen=True)
class Menu:
    menu_id: MenuId
    restaurant_id: RestaurantId
    version: int
    categories: list[str] = field(default_factory=list)
    items: list[MenuItem] = field(default_factory=list)
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.version < 1:
            raise ValueError("version must be >= 1")

    def find_item(self, item_id: MenuItemId) -> MenuItem | None:
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None
