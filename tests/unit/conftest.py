from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from fakes import (
    Deps,
    FakeMenuRepository,
    FakePublisher,
    FakeRestaurantRepository,
    FakeUnitOfWork,
    FixedClock,
    InMemoryStore,
    make_menu,
    make_settings,
    make_table,
)


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_table(make_table(qr_code="qr-rst001-t1"))
    store.add_table(make_table("tbl_002", "2", capacity=2))
    return store


@pytest.fixture
def uow_factory(store: InMemoryStore) -> Callable[[], FakeUnitOfWork]:
    return lambda: FakeUnitOfWork(store)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def restaurant_repository() -> FakeRestaurantRepository:
    return FakeRestaurantRepository(make_settings())


@pytest.fixture
def menu_repository() -> FakeMenuRepository:
    return FakeMenuRepository(make_menu())


@pytest.fixture
def deps(
    store: InMemoryStore,
    restaurant_repository: FakeRestaurantRepository,
    menu_repository: FakeMenuRepository,
    publisher: FakePublisher,
    clock: FixedClock,
) -> Deps:
    return Deps(
        store=store,
        restaurant_repository=restaurant_repository,
        menu_repository=menu_repository,
        publisher=publisher,
        clock=clock,
    )
