from __future__ import annotations

import json
import sys
import time
from pathlib import Path

from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from dinein.api.main import app
from dinein.infrastructure.messaging.redis_client import get_redis_client


def _pull_events(pubsub, count: int, timeout_seconds: float = 2.0) -> list[dict]:
    deadline = time.time() + timeout_seconds
    events: list[dict] = []
    while time.time() < deadline and len(events) < count:
        message = pubsub.get_message(ignore_subscribe_messages=True, timeout=0.2)
        if not message or message.get("type") != "message":
            time.sleep(0.05)
            continue
        payload = message.get("data")
        raw = payload.decode("utf-8") if isinstance(payload, bytes) else str(payload)
        events.append(json.loads(raw))
    return events


def test_session_and_order_changes_are_published() -> None:
    pubsub = get_redis_client().pubsub()
    pubsub.subscribe("events:rst_001")
    pubsub.get_message(timeout=0.5)

    with TestClient(app) as client:
        host = client.post(
            "/v1/restaurants/rst_001/tables/tbl_003/join", json={"name": "Ana"}
        ).json()
        client.post("/v1/restaurants/rst_001/tables/tbl_003/join", json={"name": "Ben"})
        session_id = host["session"]["sessionId"]
        headers = {"X-Join-Token": host["joinToken"], "X-Request-Id": "req-flow-1"}
        client.post(
            f"/v1/sessions/{session_id}/cart/items",
            json={"menuItemId": "itm_003"},
            headers=headers,
        )
        order = client.post(
            f"/v1/sessions/{session_id}/orders", json={}, headers=headers
        ).json()

    events = _pull_events(pubsub, count=4)
    assert [event["event_type"] for event in events] == [
        "session.started",
        "session.guest_joined",
        "cart.updated",
        "order.submitted",
    ]
    submitted = events[-1]
    assert submitted["restaurant_id"] == "rst_001"
    assert submitted["request_id"] == "req-flow-1"
    assert submitted["payload"]["orderId"] == order["orderId"]
