from __future__ import annotations

import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from dinein.domain.common.errors import ConflictError, InvalidStateError, ValidationError
from dinein.domain.common.ids import RestaurantId, SessionId, TableId
from dinein.domain.table.entities import Table, TableStatus

NOW = datetime(2026, 10, 1, 18, 0, tzinfo=timezone.utc)


def _table(status: TableStatus = TableStatus.AVAILABLE, capacity: int = 4) -> Table:
    return Table(
        table_id=TableId("tbl_001"),
        restaurant_id=RestaurantId("rst_001"),
        table_number="1",
        capacity=capacity,
        status=status,
        current_session_id=SessionId("ses_001") if status == TableStatus.OCCUPIED else None,
        last_cleaned_at=None,
    )


@pytest.mark.parametrize("capacity", [0, 21])
def test_capacity_must_be_between_one_and_twenty(capacity: int) -> None:
    with pytest.raises(ValidationError):
        _table(capacity=capacity)


def test_occupied_iff_session_reference_is_set() -> None:
    with pytest.raises(ValidationError):
        replace(_table(), current_session_id=SessionId("ses_001"))
    with pytest.raises(ValidationError):
        replace(_table(TableStatus.OCCUPIED), current_session_id=None)


def test_occupy_sets_status_and_session() -> None:
    occupied = _table().occupy(SessionId("ses_002"))

    assert occupied.status == TableStatus.OCCUPIED
    assert occupied.current_session_id == SessionId("ses_002")


def test_occupy_conflicts_unless_available() -> None:
    with pytest.raises(ConflictError) as exc_info:
        _table(TableStatus.OCCUPIED).occupy(SessionId("ses_002"))

    assert exc_info.value.details["current_session_id"] == "ses_001"
    with pytest.raises(ConflictError):
        _table(TableStatus.RESERVED).occupy(SessionId("ses_002"))


def test_release_clears_session_and_stamps_cleaning() -> None:
    released = _table(TableStatus.OCCUPIED).release(NOW)

    assert released.status == TableStatus.AVAILABLE
    assert released.current_session_id is None
    assert released.last_cleaned_at == NOW


def test_staff_cannot_touch_an_occupied_table() -> None:
    occupied = _table(TableStatus.OCCUPIED)

    with pytest.raises(InvalidStateError):
        occupied.set_status(TableStatus.OUT_OF_SERVICE, NOW)
    with pytest.raises(InvalidStateError):
        occupied.mark_needs_cleaning()


def test_staff_cannot_set_occupied_directly() -> None:
    with pytest.raises(ValidationError):
        _table().set_status(TableStatus.OCCUPIED, NOW)


def test_setting_available_marks_table_cleaned() -> None:
    dirty = _table().mark_needs_cleaning()

    assert dirty.status == TableStatus.NEEDS_CLEANING
    cleaned = dirty.set_status(TableStatus.AVAILABLE, NOW)
    assert cleaned.status == TableStatus.AVAILABLE
    assert cleaned.last_cleaned_at == NOW
    assert cleaned.set_status(TableStatus.AVAILABLE, NOW) == cleaned
