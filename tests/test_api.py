import asyncio
import logging

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from helpers import USER_ID, default_category_id
from spendwise.core.security import create_access_token
from spendwise.main import app
from spendwise.routers.deps import get_cache, get_store
from spendwise.utils.live import ConnectionRegistry
from spendwise.utils.notifications import NotificationDispatcher


@pytest.fixture
def client(store, cache):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_cache] = lambda: cache
    app.state.registry = ConnectionRegistry()
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user_id=USER_ID):
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}


def test_requires_token(client):
    response = client.get("/api/expenses/")
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Token required"}

    response = client.get("/api/expenses/", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_expense_crud(client, store):
    body = {"amount": 12.5, "description": "Lunch", "category_id": default_category_id(store, "Food")}
    created = client.post("/api/expenses/", json=body, headers=_auth())
    assert created.status_code == 201
    expense = created.json()["data"]

    listed = client.get("/api/expenses/", headers=_auth()).json()
    assert listed["success"] is True
    assert [item["expense_id"] for item in listed["data"]] == [expense["expense_id"]]

    updated = client.put(f"/api/expenses/{expense['expense_id']}", json={"amount": 20}, headers=_auth())
    assert updated.json()["data"]["amount"] == 20

    cleared = client.put(f"/api/expenses/{expense['expense_id']}", json={"amount": None}, headers=_auth())
    assert cleared.status_code == 400
    assert client.get(f"/api/expenses/{expense['expense_id']}", headers=_auth()).json()["data"]["amount"] == 20

    assert client.delete(f"/api/expenses/{expense['expense_id']}", headers=_auth()).json() == {"success": True, "data": None}
    missing = client.get(f"/api/expenses/{expense['expense_id']}", headers=_auth())
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "Expense not found"}


def test_invalid_body_is_400(client):
    response = client.post("/api/expenses/", json={"amount": -1, "description": ""}, headers=_auth())
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_transactions_listing_and_bad_range(client, store):
    body = {"type": "income", "amount": 1000, "description": "Salary", "category_id": default_category_id(store, "Salary")}
    assert client.post("/api/transactions/", json=body, headers=_auth()).status_code == 201

    listing = client.get("/api/transactions/?type=income&limit=5", headers=_auth()).json()
    assert listing["success"] is True
    assert listing["pagination"]["total_items"] == 1

    bad = client.get(
        "/api/transactions/?start_date=2025-02-01T00:00:00&end_date=2025-01-01T00:00:00",
        headers=_auth(),
    )
    assert bad.status_code == 400


def test_reports_and_insights(client):
    assert client.get("/api/reports/monthly/2025/13", headers=_auth()).status_code == 400

    monthly = client.get("/api/reports/monthly/2025/6", headers=_auth()).json()
    assert monthly["data"]["summary"]["total_expenses"] == 0

    for path in (
        "/api/reports/annual/2025",
        "/api/insights/spending-patterns",
        "/api/insights/budget-analysis",
        "/api/insights/savings-opportunities",
        "/api/analytics/health",
        "/api/analytics/predictions",
    ):
        response = client.get(path, headers=_auth())
        assert response.status_code == 200, path
        assert response.json()["success"] is True


def test_notifications_endpoints(client, cache):
    entry = NotificationDispatcher(cache, app.state.registry).send(USER_ID, {"type": "SYSTEM", "message": "hi"})

    listed = client.get("/api/notifications/", headers=_auth()).json()["data"]
    assert [item["id"] for item in listed] == [entry["id"]]

    marked = client.put(f"/api/notifications/{entry['id']}/read", headers=_auth()).json()
    assert marked["data"]["updated"] is True
    assert client.get("/api/notifications/", headers=_auth()).json()["data"][0]["read"] is True


def test_health_and_status(client):
    assert client.get("/api/health").json()["status"] == "healthy"
    status = client.get("/api/status").json()
    assert status["overall_status"] == "healthy"
    assert status["services"]["redis"]["connected"] is True


def test_websocket_receives_notifications(client, cache):
    token = create_access_token({"sub": USER_ID})
    with client.websocket_connect(f"/ws?token={token}") as websocket:
        registry = app.state.registry
        assert registry.connection_count(USER_ID) == 1

        entry = NotificationDispatcher(cache, registry).send(USER_ID, {"type": "SYSTEM", "message": "live"})
        assert websocket.receive_json() == {"event": "notification", "data": entry}


def test_websocket_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws?token=garbage"):
            pass


def test_websocket_close_leaves_room(client):
    token = create_access_token({"sub": USER_ID})
    with client.websocket_connect(f"/ws?token={token}"):
        assert app.state.registry.connection_count(USER_ID) == 1
    assert app.state.registry.connection_count(USER_ID) == 0


class _BrokenSocket:
    async def accept(self):
        pass

    async def send_json(self, message):
        raise RuntimeError("socket gone")


def test_failed_emit_on_event_loop_is_logged(caplog):
    registry = ConnectionRegistry()

    async def scenario():
        await registry.connect(USER_ID, _BrokenSocket())
        assert registry.emit(USER_ID, "notification", {"message": "hi"}) == 1
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    with caplog.at_level(logging.WARNING, logger="spendwise.utils.live"):
        asyncio.run(scenario())
    assert registry._pending == set()
    assert "socket gone" in caplog.text
