from __future__ import annotations

from dinein.application.dto.responses import TableResponse, TableSessionStatusResponse
from dinein.domain.session.entities import DiningSession
from dinein.domain.table.entities import Table


def to_table_response(table: Table) -> TableResponse:
    return TableResponse(
        tableId=str(table.table_id),
        restaurantId=str(table.restaurant_id),
        tableNumber=table.table_number,
        capacity=table.capacity,
        status=table.status.value,
        currentSessionId=str(table.current_session_id) if table.current_session_id else None,
        lastCleanedAt=table.last_cleaned_at,
        qrCode=table.qr_code,
    )


def to_table_session_status(
    table: Table, session: DiningSession | None
) -> TableSessionStatusResponse:
    guest_count = session.guest_count if session is not None else 0
    return TableSessionStatusResponse(
        tableId=str(table.table_id),
        restaurantId=str(table.restaurant_id),
        tableNumber=table.table_number,
        capacity=table.capacity,
        tableStatus=table.status.value,
        hasActiveSession=session is not None,
        sessionId=str(session.session_id) if session is not None else None,
        sessionCode=session.session_code if session is not None else None,
        sessionStatus=session.status.value if session is not None else None,
        hostName=session.host_name if session is not None else None,
        guestCount=guest_count,
        seatsLeft=max(table.capacity - guest_count, 0),
    )
