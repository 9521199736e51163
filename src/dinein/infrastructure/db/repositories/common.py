from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dinein.application.ports.repositories import DuplicateKeyError, InvalidCursorError

T = TypeVar("T")


def as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def constraint_name(exc: IntegrityError) -> str | None:
    diag = getattr(exc.orig, "diag", None)
    return getattr(diag, "constraint_name", None)


def insert_or_raise_duplicate(session: Session, add: Callable[[], T]) -> T:
    """Run ``add`` inside a savepoint and surface unique violations as DuplicateKeyError."""
    try:
        with session.begin_nested():
            result = add()
            session.flush()
    except IntegrityError as exc:
        raise DuplicateKeyError(constraint_name(exc)) from exc
    return result


def encode_cursor(sort_key: str, row_id: str) -> str:
    payload = f"{sort_key}|{row_id}"
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[str, str]:
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
        sort_key, row_id = raw.split("|", 1)
        return sort_key, row_id
    except Exception as exc:
        raise InvalidCursorError("invalid cursor") from exc


def decode_datetime_cursor(cursor: str) -> tuple[datetime, str]:
    sort_key, row_id = decode_cursor(cursor)
    try:
        moment = datetime.fromisoformat(sort_key)
    except ValueError as exc:
        raise InvalidCursorError("invalid cursor") from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment, row_id
