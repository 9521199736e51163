from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

from dinein.domain.common.errors import NotFoundError
from dinein.domain.common.ids import GuestId, MenuItemId, OrderItemId, VariationId
from dinein.domain.common.money import Money
from dinein.domain.menu.entities import DEFAULT_PREPARATION_MINUTES
from dinein.domain.order.entities import OrderItem, OrderStatus, validate_quantity


@dataclass(frozen=True)
class CartItem:
    item_id: OrderItemId
    guest_id: GuestId
    menu_item_id: MenuItemId
    variation_id: VariationId | None
    name: str
    quantity: int
    unit_price: Money
    notes: str | None
    added_at: datetime
    preparation_minutes: int = DEFAULT_PREPARATION_MINUTES

    def __post_init__(self) -> None:
        validate_quantity(self.quantity)

    @property
    def line_total(self) -> Money:
        return self.unit_price.times(self.quantity)

    def to_order_item(self) -> OrderItem:
        return OrderItem(
            item_id=self.item_id,
            menu_item_id=self.menu_item_id,
            variation_id=self.variation_id,
            guest_id=self.guest_id,
            name=self.name,
            quantity=self.quantity,
            unit_price=self.unit_price,
            line_total=self.line_total,
            notes=self.notes,
            status=OrderStatus.PENDING,
            preparation_minutes=self.preparation_minutes,
        )


@dataclass(frozen=True)
class Cart:
    """Items a session has picked but not yet submitted to the kitchen."""

    items: list[CartItem] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.items

    def find(self, item_id: OrderItemId) -> CartItem | None:
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    def add(self, item: CartItem) -> Cart:
        return replace(self, items=[*self.items, item])

    def update(self, item_id: OrderItemId, quantity: int, notes: str | None) -> Cart:
        current = self._require(item_id)
        updated = replace(current, quantity=quantity, notes=notes)
        return replace(
            self,
            items=[updated if item.item_id == item_id else item for item in self.items],
        )

    def remove(self, item_id: OrderItemId) -> Cart:
        self._require(item_id)
        return replace(self, items=[item for item in self.items if item.item_id != item_id])

    def cleared(self) -> Cart:
        return Cart()

    def _require(self, item_id: OrderItemId) -> CartItem:
        item = self.find(item_id)
        if item is None:
            raise NotFoundError(f"cart item {item_id} not found", item_id=item_id)
        return item
