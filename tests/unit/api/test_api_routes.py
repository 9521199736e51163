from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

import dinein.api.dependencies as api_dependencies
from dinein.api.main import app
from fakes import Deps

QR_JOIN = "/v1/qr/qr-rst001-t1/join"


@pytest.fixture
def client(deps: Deps, monkeypatch) -> TestClient:
    monkeypatch.setattr(api_dependencies, "unit_of_work", deps.uow_factory)
    monkeypatch.setattr(
        api_dependencies, "restaurant_repository", lambda: deps.restaurant_repository
    )
    monkeypatch.setattr(api_dependencies, "menu_repository", lambda: deps.menu_repository)
    monkeypatch.setattr(api_dependencies, "event_publisher", lambda: deps.publisher)
    return TestClient(app)


def _token(joined: dict) -> dict[str, str]:
    return {"X-Join-Token": joined["joinToken"]}


def test_dining_flow_over_http(client: TestClient, deps: Deps) -> None:
    host = client.post(QR_JOIN, json={"name": "Ana"}).json()
    guest_response = client.post(
        "/v1/restaurants/rst_001/tables/tbl_001/join", json={"name": "Ben"}
    )
    guest = guest_response.json()
    session_id = host["session"]["sessionId"]

    assert host["isHost"] is True
    assert guest_response.status_code == 200
    assert guest["isHost"] is False
    assert guest["session"]["guestCount"] == 2

    added = client.post(
        f"/v1/sessions/{session_id}/cart/items",
        json={"menuItemId": "itm_001", "quantity": 2},
        headers=_token(guest),
    )
    assert added.status_code == 201
    assert added.json()["cart"][0]["lineTotal"]["amountCents"] == 2000

    submitted = client.post(f"/v1/sessions/{session_id}/orders", json={}, headers=_token(guest))
    order = submitted.json()
    assert submitted.status_code == 201
    assert order["status"] == "CONFIRMED"
    assert order["total"]["amountCents"] == 2160

    preparing = client.post(f"/v1/orders/{order['orderId']}/actions/start-preparing")
    assert preparing.json()["status"] == "PREPARING"

    queue = client.get("/v1/restaurants/rst_001/kitchen/queue", params={"status": "preparing"})
    assert [o["orderId"] for o in queue.json()["orders"]] == [order["orderId"]]

    paid_by_guest = client.post(
        f"/v1/sessions/{session_id}/request-payment", headers=_token(guest)
    )
    assert paid_by_guest.status_code == 409
    assert paid_by_guest.json()["error"]["details"]["reason"] == "HOST_ONLY"

    awaiting = client.post(f"/v1/sessions/{session_id}/request-payment", headers=_token(host))
    assert awaiting.json()["status"] == "AWAITING_PAYMENT"

    splits = client.post(f"/v1/sessions/{session_id}/splits", json={"splitType": "EQUAL"})
    assert [s["amount"]["amountCents"] for s in splits.json()["splits"]] == [1080, 1080]

    assert "order.submitted" in deps.publisher.event_types()


def test_second_start_on_busy_table_is_conflict(client: TestClient) -> None:
    first = client.post(
        "/v1/restaurants/rst_001/tables/tbl_001/sessions", json={"hostName": "Ana"}
    )
    second = client.post(
        "/v1/restaurants/rst_001/tables/tbl_001/sessions", json={"hostName": "Bo"}
    )

    assert first.status_code == 201
    assert second.status_code == 409
    body = second.json()
    assert body["error"]["code"] == "CONFLICT"
    assert body["requestId"] == second.headers["X-Request-Id"]


def test_capacity_and_empty_cart_map_to_409(client: TestClient) -> None:
    host = client.post(
        "/v1/restaurants/rst_001/tables/tbl_002/join", json={"name": "Ana"}
    ).json()
    client.post("/v1/restaurants/rst_001/tables/tbl_002/join", json={"name": "Ben"})
    full = client.post("/v1/restaurants/rst_001/tables/tbl_002/join", json={"name": "Cy"})
    empty = client.post(
        f"/v1/sessions/{host['session']['sessionId']}/orders", json={}, headers=_token(host)
    )

    assert full.status_code == 409
    assert full.json()["error"]["code"] == "CAPACITY_EXCEEDED"
    assert full.json()["error"]["details"]["capacity"] == 2
    assert empty.status_code == 409
    assert empty.json()["error"]["code"] == "EMPTY_CART"


def test_client_errors(client: TestClient) -> None:
    host = client.post(QR_JOIN, json={"name": "Ana"}).json()
    session_id = host["session"]["sessionId"]

    missing_token = client.post(
        f"/v1/sessions/{session_id}/cart/items", json={"menuItemId": "itm_001"}
    )
    unknown_item = client.post(
        f"/v1/sessions/{session_id}/cart/items",
        json={"menuItemId": "itm_404"},
        headers=_token(host),
    )
    bad_body = client.post(
        "/v1/restaurants/rst_001/tables/tbl_002/sessions", json={"hostName": ""}
    )
    unknown_session = client.get("/v1/sessions/ses_404")
    unknown_action = client.post("/v1/orders/ord_404/actions/teleport")

    assert missing_token.status_code == 401
    assert missing_token.json()["error"]["code"] == "UNAUTHORIZED"
    assert unknown_item.status_code == 400
    assert unknown_item.json()["error"]["code"] == "ORDERING_FAILED"
    assert bad_body.status_code == 400
    assert bad_body.json()["error"]["code"] == "INVALID_REQUEST"
    assert unknown_session.status_code == 404
    assert unknown_action.status_code == 404


def test_table_routes(client: TestClient) -> None:
    listed = client.get("/v1/restaurants/rst_001/tables", params={"limit": 1})
    assert [t["tableId"] for t in listed.json()["tables"]] == ["tbl_001"]
    assert listed.json()["nextCursor"] is not None

    reserved = client.put(
        "/v1/restaurants/rst_001/tables/tbl_002/status", json={"status": "RESERVED"}
    )
    assert reserved.json()["status"] == "RESERVED"

    bad_status = client.get("/v1/restaurants/rst_001/tables", params={"status": "BROKEN"})
    assert bad_status.status_code == 400
    assert bad_status.json()["error"]["code"] == "VALIDATION_FAILED"


def test_unexpected_error_is_a_generic_500(monkeypatch, client: TestClient) -> None:
    def broken_unit_of_work():
        raise RuntimeError("database password is hunter2")

    monkeypatch.setattr(api_dependencies, "unit_of_work", broken_unit_of_work)
    failing_client = TestClient(app, raise_server_exceptions=False)

    response = failing_client.get("/v1/sessions/ses_001")

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == {
        "code": "INTERNAL_ERROR",
        "message": "internal server error",
        "details": {},
    }
    assert "hunter2" not in response.text


def test_metrics_endpoint_exposes_lifecycle_counters(client: TestClient) -> None:
    client.post(QR_JOIN, json={"name": "Ana"})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "dinein_sessions_started_total" in response.text
    assert 'http_requests_total{method="POST",path="/v1/qr/{qr_code}/join"' in response.text


def test_guest_menu_with_etag(client: TestClient) -> None:
    first = client.get("/v1/restaurants/rst_001/menu")
    assert first.status_code == 200
    assert [item["itemId"] for item in first.json()["items"]] == ["itm_001", "itm_003"]

    cached = client.get(
        "/v1/restaurants/rst_001/menu", headers={"If-None-Match": first.headers["ETag"]}
    )
    assert cached.status_code == 304

    missing = client.get("/v1/restaurants/rst_999/menu")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"


def test_lookups_before_joining(client: TestClient) -> None:
    before = client.get("/v1/qr/qr-rst001-t1/active-session").json()
    assert before["hasActiveSession"] is False

    host = client.post(QR_JOIN, json={"name": "Ana"}).json()
    code = host["session"]["sessionCode"]

    after = client.get("/v1/qr/qr-rst001-t1/active-session").json()
    assert after["hasActiveSession"] is True
    assert after["sessionCode"] == code

    by_code = client.get(f"/v1/session-codes/{code}")
    assert by_code.status_code == 200
    assert by_code.json()["sessionId"] == host["session"]["sessionId"]
    assert client.get("/v1/session-codes/abc").status_code == 400
    assert client.get("/v1/qr/qr-unknown/active-session").status_code == 404
