from __future__ import annotations

import os
from datetime import timedelta

from fastapi import Header, HTTPException
from opentelemetry import trace

from dinein.api.middleware.request_id import get_request_id
from dinein.application.ports.publisher import EventPublisher
from dinein.application.ports.repositories import (
    MenuRepository,
    RestaurantRepository,
    UnitOfWork,
)
from dinein.application.use_cases.context import TraceContext
from dinein.application.use_cases.session_queries import DEFAULT_LONG_RUNNING_THRESHOLD
from dinein.infrastructure.db.repositories.menu_repo import SqlAlchemyMenuRepository
from dinein.infrastructure.db.repositories.restaurant_repo import SqlAlchemyRestaurantRepository
from dinein.infrastructure.db.unit_of_work import SqlAlchemyUnitOfWork
from dinein.infrastructure.messaging.redis_publisher import RedisEventPublisher

JOIN_TOKEN_HEADER = "X-Join-Token"


def current_trace_context() -> TraceContext:
    span_context = trace.get_current_span().get_span_context()
    trace_id = format(span_context.trace_id, "032x") if span_context.is_valid else None
    return TraceContext(trace_id=trace_id, request_id=get_request_id())


def unit_of_work() -> UnitOfWork:
    return SqlAlchemyUnitOfWork()


def menu_repository() -> MenuRepository:
    return SqlAlchemyMenuRepository()


def restaurant_repository() -> RestaurantRepository:
    return SqlAlchemyRestaurantRepository()


def event_publisher() -> EventPublisher:
    return RedisEventPublisher()


def long_running_threshold() -> timedelta:
    raw_value = os.getenv("LONG_RUNNING_SESSION_MINUTES")
    if not raw_value:
        return DEFAULT_LONG_RUNNING_THRESHOLD
    return timedelta(minutes=int(raw_value))


def require_join_token(
    join_token: str | None = Header(default=None, alias=JOIN_TOKEN_HEADER),
) -> str:
    if not join_token:
        raise HTTPException(status_code=401, detail=f"{JOIN_TOKEN_HEADER} header is required")
    return join_token


def optional_join_token(
    join_token: str | None = Header(default=None, alias=JOIN_TOKEN_HEADER),
) -> str | None:
    return join_token or None
