import pytest
from fastapi.testclient import TestClient

from shopassist.core import services
from shopassist.core.config import settings
from shopassist.llm.mock_provider import MockProvider
from shopassist.main import app


@pytest.fixture
def client(monkeypatch, tmp_path):
    # No real model backends in tests; session logs go to a temp dir.
    monkeypatch.setattr(services.router, "providers", [MockProvider()])
    monkeypatch.setattr(settings, "log_dir", str(tmp_path / "logs"))
    return TestClient(app)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["providers"] == ["mock"]


def test_providers(client):
    assert client.get("/api/providers").json()["status"] == {"mock": True}


def test_chat_price_search(client):
    response = client.post("/api/chat", json={
        "tenantId": "default",
        "sessionId": "api-search",
        "message": "sneakers under $100",
        "conversationHistory": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "Hello!"}],
    })

    assert response.status_code == 200
    data = response.json()
    assert data["type"] == "tool_result"
    assert data["action"] == "search_products"
    assert [p["id"] for p in data["toolResult"]["items"]] == ["p7", "p9"]
    assert "Aero Running Sneakers" in data["groundedText"]
    assert "text" not in data


def test_chat_unknown_tenant(client):
    response = client.post("/api/chat", json={"tenantId": "nobody", "message": "hello"})
    assert response.status_code == 404


def test_chat_validates_request(client):
    response = client.post("/api/chat", json={"tenantId": "default", "message": ""})
    assert response.status_code == 422


def test_direct_actions_and_cart(client):
    add = client.post("/api/actions", json={
        "tenantId": "default", "sessionId": "api-cart", "action": "add_to_cart",
        "params": {"productId": "p13", "quantity": 3},
    })
    assert add.status_code == 200
    assert add.json()["result"]["summary"]["totalAmount"] == 75.0
    assert add.json()["result"]["_meta"]["source"] == "generic"

    cart = client.get("/api/sessions/default/api-cart/cart").json()
    assert cart["cart"][0]["product_id"] == "p13"
    assert cart["summary"]["totalItems"] == 3


def test_direct_action_disabled_for_tenant(client):
    response = client.post("/api/actions", json={
        "tenantId": "example", "sessionId": "api-x", "action": "cancel_order", "params": {"orderId": "ORD-1"},
    })
    assert response.status_code == 404


def test_direct_action_with_bad_params(client):
    response = client.post("/api/actions", json={
        "tenantId": "default", "sessionId": "api-x", "action": "get_order_status", "params": {},
    })
    assert response.status_code == 422


def test_tenant_details(client):
    data = client.get("/api/tenants/example").json()
    assert data["tenant"]["displayName"] == "Example Store"
    assert data["registry"]["meta"]["loadedFrom"] == "tenant-specific"
    assert "cancel_order" not in data["registry"]["actions"]
    assert data["adapters"]["commerce.search"] == "tenant-specific"
    assert data["adapters"]["commerce.view_cart"] == "generic"
