from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from dinein.infrastructure.db.models.menu import (
    MenuItemModel,
    MenuItemVariationModel,
    MenuModel,
    RestaurantModel,
)
from dinein.infrastructure.db.models.table import TableModel
from dinein.infrastructure.db.models.voucher import VoucherModel
from dinein.infrastructure.db.session import get_engine

RESTAURANT_ID = "rst_001"
MENU_ID = "men_001"

RESTAURANT = {
    "id": RESTAURANT_ID,
    "name": "Downtown Test Kitchen",
    "currency": "USD",
    "tax_rate": Decimal("0.0800"),
    "service_charge_rate": Decimal("0"),
    "delivery_fee_cents": 499,
}

TABLES = [
    {"id": "tbl_001", "table_number": "1", "capacity": 2, "qr_code": "qr-rst001-t1"},
    {"id": "tbl_002", "table_number": "2", "capacity": 4, "qr_code": "qr-rst001-t2"},
    {"id": "tbl_003", "table_number": "3", "capacity": 4, "qr_code": "qr-rst001-t3"},
    {"id": "tbl_004", "table_number": "4", "capacity": 8, "qr_code": "qr-rst001-t4"},
]

MENU_ITEMS = [
    {
        "id": "itm_001",
        "name": "Margherita Pizza",
        "description": "Tomato, mozzarella, basil",
        "category_id": "mains",
        "price_cents": 1000,
        "is_available": True,
        "preparation_time_minutes": 15,
    },
    {
        "id": "itm_002",
        "name": "Chicken Alfredo",
        "description": "Fettuccine, creamy parmesan sauce",
        "category_id": "mains",
        "price_cents": 1690,
        "is_available": True,
        "preparation_time_minutes": 20,
    },
    {
        "id": "itm_003",
        "name": "Caesar Salad",
        "description": "Romaine, croutons, parmesan",
        "category_id": "starters",
        "price_cents": 550,
        "is_available": True,
        "preparation_time_minutes": 5,
    },
    {
        "id": "itm_004",
        "name": "Tiramisu",
        "description": "Espresso-soaked ladyfingers",
        "category_id": "desserts",
        "price_cents": 850,
        "is_available": False,
        "preparation_time_minutes": 5,
    },
]

VARIATIONS = [
    {"id": "var_001", "item_id": "itm_001", "name": "Large", "price_adjustment_cents": 400},
    {"id": "var_002", "item_id": "itm_001", "name": "Gluten free", "price_adjustment_cents": 200},
    {
        "id": "var_003",
        "item_id": "itm_003",
        "name": "Half portion",
        "price_adjustment_cents": -150,
        "is_active": False,
    },
]

VOUCHERS = [
    {
        "id": "vch_001",
        "code": "WELCOME20",
        "voucher_type": "PERCENTAGE",
        "discount_value": Decimal("20"),
        "maximum_discount_cents": 500,
        "minimum_order_cents": None,
        "usage_limit": None,
    },
    {
        "id": "vch_002",
        "code": "FIVEOFF",
        "voucher_type": "FIXED_AMOUNT",
        "discount_value": Decimal("5.00"),
        "maximum_discount_cents": None,
        "minimum_order_cents": 2000,
        "usage_limit": 1,
    },
]


def _upsert(session: Session, model: type, values: dict[str, Any]) -> None:
    updates = {key: value for key, value in values.items() if key != "id"}
    session.execute(
        insert(model)
        .values(**values)
        .on_conflict_do_update(index_elements=[model.id], set_=updates)
    )


def main() -> None:
    engine = get_engine(timeout_seconds=2.0)
    inspector = inspect(engine)
    required_tables = {"restaurants", "menus", "menu_items", "tables", "vouchers"}
    if not required_tables.issubset(set(inspector.get_table_names(schema="public"))):
        print("no schema yet")
        return

    with Session(engine) as session:
        _upsert(session, RestaurantModel, RESTAURANT)
        _upsert(session, MenuModel, {"id": MENU_ID, "restaurant_id": RESTAURANT_ID, "version": 1})

        for table in TABLES:
            _upsert(
                session,
                TableModel,
                {
                    **table,
                    "restaurant_id": RESTAURANT_ID,
                    "status": "AVAILABLE",
                    "current_session_id": None,
                    "version": 1,
                },
            )

        for item in MENU_ITEMS:
            _upsert(session, MenuItemModel, {**item, "menu_id": MENU_ID, "currency": "USD"})

        for variation in VARIATIONS:
            _upsert(session, MenuItemVariationModel, {"is_active": True, **variation})

        for voucher in VOUCHERS:
            _upsert(
                session,
                VoucherModel,
                {
                    **voucher,
                    "restaurant_id": RESTAURANT_ID,
                    "currency": "USD",
                    "status": "ACTIVE",
                    "valid_from": None,
                    "expires_at": None,
                    "used_count": 0,
                },
            )

        session.commit()
        print("seed complete")


if __name__ == "__main__":
    main()
