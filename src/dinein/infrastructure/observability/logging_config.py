from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace

from dinein.api.middleware.request_id import get_request_id

_LOGGING_CONFIGURED = False

# Keys promoted from ``extra=`` into the JSON payload.
EXTRA_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "restaurant_id",
    "table_id",
    "session_id",
    "guest_id",
    "order_id",
    "split_id",
    "voucher_code",
    "event_type",
    "channel",
    "receivers",
    "status",
    "from_status",
    "to_status",
    "payment_status",
    "action",
    "operation",
    "attempts",
    "outcome",
    "capacity",
    "guest_count",
    "cart_items",
    "split_type",
    "splits",
    "total_cents",
    "tip_cents",
    "discount_cents",
    "error_code",
)


def _trace_fields() -> tuple[str | None, str | None]:
    span = trace.get_current_span()
    span_context = span.get_span_context()
    if not span_context.is_valid:
        return None, None
    return (
        format(span_context.trace_id, "032x"),
        format(span_context.span_id, "016x"),
    )


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        trace_id, span_id = _trace_fields()
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": get_request_id(),
            "trace_id": trace_id,
            "span_id": span_id,
        }

        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging() -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # uvicorn's access log duplicates the access middleware.
    logging.getLogger("uvicorn.access").disabled = True

    _LOGGING_CONFIGURED = True
