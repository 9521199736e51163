from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from dinein.domain.common.errors import ConflictError, InvalidStateError, ValidationError
from dinein.domain.common.ids import RestaurantId, SessionId, TableId

MIN_CAPACITY = 1
MAX_CAPACITY = 20


class TableStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    RESERVED = "RESERVED"
    NEEDS_CLEANING = "NEEDS_CLEANING"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


# Statuses staff may set by hand. OCCUPIED is only reachable through occupy().
STAFF_SETTABLE_STATUSES = frozenset(
    {
        TableStatus.AVAILABLE,
        TableStatus.RESERVED,
        TableStatus.NEEDS_CLEANING,
        TableStatus.OUT_OF_SERVICE,
    }
)


@dataclass(frozen=True)
class Table:
    table_id: TableId
    restaurant_id: RestaurantId
    table_number: str
    capacity: int
    status: TableStatus
    current_session_id: SessionId | None
    last_cleaned_at: datetime | None
    qr_code: str | None = None
    version: int = 1

    def __post_init__(self) -> None:
        if not self.table_number.strip():
            raise ValidationError("table_number must be non-empty", table_id=self.table_id)
        if self.capacity < MIN_CAPACITY or self.capacity > MAX_CAPACITY:
            raise ValidationError(
                f"capacity must be between {MIN_CAPACITY} and {MAX_CAPACITY}",
                table_id=self.table_id,
                capacity=self.capacity,
            )
        occupied = self.status == TableStatus.OCCUPIED
        if occupied != (self.current_session_id is not None):
            raise ValidationError(
                "current_session_id must be set exactly when the table is OCCUPIED",
                table_id=self.table_id,
                status=self.status.value,
            )

    def occupy(self, session_id: SessionId) -> Table:
        if self.status != TableStatus.AVAILABLE:
            raise ConflictError(
                f"table {self.table_id} is not available",
                table_id=self.table_id,
                status=self.status.value,
                current_session_id=self.current_session_id,
            )
        return replace(self, status=TableStatus.OCCUPIED, current_session_id=session_id)

    def release(self, now: datetime) -> Table:
        return replace(
            self,
            status=TableStatus.AVAILABLE,
            current_session_id=None,
            last_cleaned_at=now,
        )

    def mark_needs_cleaning(self) -> Table:
        self._ensure_not_occupied("mark for cleaning")
        return replace(self, status=TableStatus.NEEDS_CLEANING)

    def set_status(self, status: TableStatus, now: datetime) -> Table:
        if status not in STAFF_SETTABLE_STATUSES:
            raise ValidationError(
                f"status {status.value} cannot be set directly",
                table_id=self.table_id,
                status=status.value,
            )
        if status == self.status:
            return self
        self._ensure_not_occupied(f"set status {status.value}")
        if status == TableStatus.AVAILABLE:
            return self.release(now)
        return replace(self, status=status)

    def _ensure_not_occupied(self, action: str) -> None:
        if self.status == TableStatus.OCCUPIED:
            raise InvalidStateError(
                f"cannot {action} while table {self.table_id} is occupied",
                table_id=self.table_id,
                status=self.status.value,
                current_session_id=self.current_session_id,
            )
