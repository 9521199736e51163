from __future__ import annotations

from typing import NewType

RestaurantId = NewType("RestaurantId", str)
MenuId = NewType("MenuId", str)
MenuItemId = NewType("MenuItemId", str)
VariationId = NewType("VariationId", str)
TableId = NewType("TableId", str)
SessionId = NewType("SessionId", str)
GuestId = NewType("GuestId", str)
OrderId = NewType("OrderId", str)
OrderItemId = NewType("OrderItemId", str)
VoucherId = NewType("VoucherId", str)
BillSplitId = NewType("BillSplitId", str)
