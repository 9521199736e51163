from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class MoneyResponse(BaseModel):
    amountCents: int
    currency: str


class MenuItemVariationResponse(BaseModel):
    variationId: str
    name: str
    priceMoney: MoneyResponse


class MenuItemResponse(BaseModel):
    itemId: str
    name: str
    description: str | None = None
    priceMoney: MoneyResponse
    categoryId: str | None = None
    preparationTimeMinutes: int
    variations: list[MenuItemVariationResponse] = Field(default_factory=list)


class MenuResponse(BaseModel):
    menuId: str
    restaurantId: str
    menuVersion: int
    categories: list[str] = Field(default_factory=list)
    items: list[MenuItemResponse] = Field(default_factory=list)
    updatedAt: datetime


class TableResponse(BaseModel):
    tableId: str
    restaurantId: str
    tableNumber: str
    capacity: int
    status: str
    currentSessionId: str | None = None
    lastCleanedAt: datetime | None = None
    qrCode: str | None = None


class TableListResponse(BaseModel):
    tables: list[TableResponse] = Field(default_factory=list)
    nextCursor: str | None = None


class TableSessionStatusResponse(BaseModel):
    tableId: str
    restaurantId: str
    tableNumber: str
    capacity: int
    tableStatus: str
    hasActiveSession: bool
    sessionId: str | None = None
    sessionCode: str | None = None
    sessionStatus: str | None = None
    hostName: str | None = None
    guestCount: int = 0
    seatsLeft: int


class GuestResponse(BaseModel):
    guestId: str
    name: str
    isHost: bool
    joinedAt: datetime
    lastActivityAt: datetime
    recentlyActive: bool


class CartItemResponse(BaseModel):
    itemId: str
    guestId: str
    menuItemId: str
    variationId: str | None = None
    name: str
    quantity: int
    unitPrice: MoneyResponse
    lineTotal: MoneyResponse
    notes: str | None = None
    addedAt: datetime


class BillSplitResponse(BaseModel):
    splitId: str
    guestId: str
    splitType: str
    amount: MoneyResponse
    percentage: str | None = None
    paymentStatus: str
    paymentMethod: str | None = None
    paidAt: datetime | None = None


class SessionResponse(BaseModel):
    sessionId: str
    restaurantId: str
    tableId: str
    sessionCode: str
    status: str
    guestCount: int
    hostName: str
    specialRequests: str | None = None
    guests: list[GuestResponse] = Field(default_factory=list)
    cart: list[CartItemResponse] = Field(default_factory=list)
    splits: list[BillSplitResponse] = Field(default_factory=list)
    totalAmount: MoneyResponse
    tipAmount: MoneyResponse
    paymentStatus: str
    waiterCalled: bool
    waiterCalledAt: datetime | None = None
    waiterRespondedAt: datetime | None = None
    startedAt: datetime
    endedAt: datetime | None = None


class JoinedSessionResponse(BaseModel):
    session: SessionResponse
    guestId: str
    joinToken: str
    isHost: bool


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse] = Field(default_factory=list)


class SessionHistoryItemResponse(BaseModel):
    sessionId: str
    tableId: str
    sessionCode: str
    status: str
    guestCount: int
    totalAmount: MoneyResponse
    orderCount: int
    averageOrderValue: MoneyResponse
    durationMinutes: int
    startedAt: datetime
    endedAt: datetime | None = None


class SessionHistoryResponse(BaseModel):
    sessions: list[SessionHistoryItemResponse] = Field(default_factory=list)
    nextCursor: str | None = None


class OrderItemResponse(BaseModel):
    itemId: str
    menuItemId: str
    variationId: str | None = None
    guestId: str | None = None
    name: str
    quantity: int
    unitPrice: MoneyResponse
    lineTotal: MoneyResponse
    notes: str | None = None
    status: str
    preparedAt: datetime | None = None
    servedAt: datetime | None = None


class OrderResponse(BaseModel):
    orderId: str
    sessionId: str
    restaurantId: str
    tableId: str
    orderNumber: str
    orderType: str
    status: str
    paymentStatus: str
    items: list[OrderItemResponse] = Field(default_factory=list)
    subtotal: MoneyResponse
    tax: MoneyResponse
    serviceCharge: MoneyResponse
    deliveryFee: MoneyResponse
    discount: MoneyResponse
    total: MoneyResponse
    voucherCode: str | None = None
    createdAt: datetime
    estimatedReadyAt: datetime | None = None
    readyAt: datetime | None = None
    servedAt: datetime | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse] = Field(default_factory=list)


class KitchenQueueResponse(BaseModel):
    orders: list[OrderResponse] = Field(default_factory=list)
    nextCursor: str | None = None


class DiscountPreviewResponse(BaseModel):
    code: str
    valid: bool
    amount: MoneyResponse
    discount: MoneyResponse


class BillSplitsResponse(BaseModel):
    sessionId: str
    paymentStatus: str
    total: MoneyResponse
    splits: list[BillSplitResponse] = Field(default_factory=list)
