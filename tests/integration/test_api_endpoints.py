import pytest
from unittest.mock import AsyncMock
from httpx import ASGITransport, AsyncClient

from agribridge.api.deps import get_cart_storage, get_data_store
from agribridge.core.exceptions import DataStoreError
from agribridge.main import app

USER = {"Authorization": "Bearer token-u1"}
TOMATOES = {"id": "p1", "name": "Tomatoes", "price": 10, "farmer": {"full_name": "Kofi Boateng"}}
DELIVERY = {"delivery_details": {"address": "12 Ring Road", "region": "Greater Accra"}}


@pytest.fixture(autouse=True)
def overrides(mock_data_store, storage):
    app.dependency_overrides[get_data_store] = lambda: mock_data_store
    app.dependency_overrides[get_cart_storage] = lambda: storage
    yield
    app.dependency_overrides.clear()


def api_client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_root_and_health():
    async with api_client() as client:
        root = await client.get("/")
        health = await client.get("/health")

    assert root.json() == {"message": "Agribridge API", "status": "operational"}
    assert health.status_code == 200
    assert health.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_review_threads(mock_data_store):
    mock_data_store.fetch_reviews = AsyncMock(return_value=[
        {"id": 1, "parent_id": None, "rating": 4, "comment": "Good", "created_at": "2024-01-02"},
        {"id": 2, "parent_id": 1, "rating": 0, "comment": "Thanks", "created_at": "2024-01-03"},
        {"id": 3, "parent_id": None, "rating": 5, "comment": "Great", "created_at": "2024-01-01"},
    ])

    async with api_client() as client:
        resp = await client.get("/api/products/p1/reviews")

    assert resp.status_code == 200
    body = resp.json()
    assert body["review_count"] == 2
    assert body["average_rating"] == 4.5
    assert [r["id"] for r in body["reviews"]] == [1, 3]
    assert body["reviews"][0]["replies"][0]["id"] == 2
    assert body["reviews"][0]["user"]["full_name"] == "Anonymous User"


@pytest.mark.asyncio
async def test_post_review_requires_login(mock_data_store):
    async with api_client() as client:
        resp = await client.post("/api/products/p1/reviews", json={"comment": "Nice", "rating": 5})

    assert resp.status_code == 401
    mock_data_store.insert_review.assert_not_awaited()


@pytest.mark.asyncio
async def test_post_review_without_rating_rejected():
    async with api_client() as client:
        resp = await client.post("/api/products/p1/reviews", json={"comment": "Nice"}, headers=USER)

    assert resp.status_code == 400
    assert resp.json()["code"] == "REVIEW_INVALID"
    assert resp.json()["details"]["field"] == "rating"


@pytest.mark.asyncio
async def test_guest_cannot_add_to_cart(storage):
    async with api_client() as client:
        resp = await client.post("/api/cart/items", json={"product": TOMATOES, "quantity": 1})

    assert resp.status_code == 401
    assert resp.json()["code"] == "AUTHENTICATION_REQUIRED"
    assert "agribridge_cart_guest" not in storage


@pytest.mark.asyncio
async def test_cart_lifecycle(mock_data_store):
    async with api_client() as client:
        added = await client.post("/api/cart/items", json={"product": TOMATOES, "quantity": 2}, headers=USER)
        merged = await client.post("/api/cart/items", json={"product": TOMATOES, "quantity": 3}, headers=USER)
        cart = await client.get("/api/cart", headers=USER)
        updated = await client.patch("/api/cart/items/p1", json={"quantity": 0}, headers=USER)

    assert added.status_code == 201
    assert added.json()["created"] is True
    assert merged.json()["created"] is False
    assert merged.json()["item"]["quantity"] == 5
    mock_data_store.increment_times_in_cart.assert_awaited_once_with("p1")

    assert cart.json()["item_count"] == 5
    assert cart.json()["subtotal"] == 50.0
    assert cart.json()["items"][0]["farmer"] == {"full_name": "Kofi Boateng"}

    assert updated.json()["items"] == []


@pytest.mark.asyncio
async def test_checkout_success_clears_cart():
    async with api_client() as client:
        await client.post("/api/cart/items", json={"product": TOMATOES, "quantity": 2}, headers=USER)
        resp = await client.post("/api/cart/checkout", json=DELIVERY, headers=USER)
        cart = await client.get("/api/cart", headers=USER)

    assert resp.status_code == 200
    body = resp.json()
    assert body["order"]["id"] == "ord-0001-aaaa-bbbb"
    assert body["whatsapp_url"].startswith("https://wa.me/")
    assert cart.json()["items"] == []


@pytest.mark.asyncio
async def test_checkout_rollback_keeps_cart(mock_data_store):
    mock_data_store.insert_order_items = AsyncMock(side_effect=DataStoreError("insert failed"))

    async with api_client() as client:
        await client.post("/api/cart/items", json={"product": TOMATOES, "quantity": 2}, headers=USER)
        resp = await client.post("/api/cart/checkout", json=DELIVERY, headers=USER)
        cart = await client.get("/api/cart", headers=USER)

    assert resp.status_code == 502
    assert resp.json()["code"] == "ORDER_ITEMS_FAILED"
    assert resp.json()["details"]["rolled_back"] is True
    mock_data_store.delete_order.assert_awaited_once_with("ord-0001-aaaa-bbbb")
    assert cart.json()["item_count"] == 2


@pytest.mark.asyncio
async def test_checkout_empty_cart():
    async with api_client() as client:
        resp = await client.post("/api/cart/checkout", json=DELIVERY, headers=USER)

    assert resp.status_code == 400
    assert resp.json()["code"] == "CART_EMPTY"


@pytest.mark.asyncio
async def test_paystack_setup_and_confirm():
    async with api_client() as client:
        await client.post("/api/cart/items", json={"product": TOMATOES, "quantity": 1}, headers=USER)
        setup = await client.post("/api/cart/checkout/paystack", json=DELIVERY, headers=USER)
        confirm = await client.post(
            "/api/cart/checkout/paystack/ord-0001-aaaa-bbbb/confirm",
            json={"status": "success"},
            headers=USER,
        )
        cart = await client.get("/api/cart", headers=USER)

    assert setup.status_code == 200
    assert setup.json()["paystack_config"]["amount"] == 1000
    assert confirm.json() == {"order_id": "ord-0001-aaaa-bbbb", "confirmed": True}
    assert cart.json()["items"] == []


@pytest.mark.asyncio
async def test_order_tracking(mock_data_store):
    mock_data_store.fetch_order = AsyncMock(
        return_value={"id": "ord-1", "user_id": "u1", "status": "Processing", "total_amount": 10}
    )
    mock_data_store.fetch_order_status_history = AsyncMock(return_value=[
        {"id": 1, "order_id": "ord-1", "status": "Order Placed", "created_at": "2024-01-01T00:00:00Z"},
        {"id": 2, "order_id": "ord-1", "status": "Processing", "created_at": "2024-01-02T00:00:00Z"},
    ])

    async with api_client() as client:
        own = await client.get("/api/orders/ord-1/tracking", headers=USER)
        other = await client.get("/api/orders/ord-1/tracking", headers={"Authorization": "Bearer token-u2"})

    assert own.status_code == 200
    assert [e["status"] for e in own.json()["history"]] == ["Processing", "Order Placed"]
    assert other.status_code == 404


@pytest.mark.asyncio
async def test_order_tracking_missing_order():
    async with api_client() as client:
        resp = await client.get("/api/orders/nope/tracking", headers=USER)

    assert resp.status_code == 404
    assert resp.json()["code"] == "ORDER_NOT_FOUND"


@pytest.mark.asyncio
async def test_user_id_header_is_not_trusted(mock_data_store, storage):
    spoofed = {"X-User-Id": "u1", "X-User-Email": "ama@example.com"}

    async with api_client() as client:
        add = await client.post("/api/cart/items", json={"product": TOMATOES, "quantity": 1}, headers=spoofed)
        tracking = await client.get("/api/orders/ord-1/tracking", headers=spoofed)

    assert add.status_code == 401
    assert tracking.status_code == 401
    assert "agribridge_cart_u1" not in storage
    mock_data_store.fetch_auth_user.assert_not_awaited()
    mock_data_store.fetch_profile.assert_not_awaited()


@pytest.mark.asyncio
async def test_rejected_token_is_unauthorized(mock_data_store):
    async with api_client() as client:
        resp = await client.get("/api/cart", headers={"Authorization": "Bearer forged-token"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid or expired token"
    mock_data_store.fetch_auth_user.assert_awaited_once_with("forged-token")
    mock_data_store.fetch_profile.assert_not_awaited()


@pytest.mark.asyncio
async def test_orphan_reply_not_in_review_count(mock_data_store):
    mock_data_store.fetch_reviews = AsyncMock(return_value=[
        {"id": 1, "parent_id": None, "rating": 5, "comment": "Good", "created_at": "2024-01-02"},
        {"id": 2, "parent_id": 99, "rating": 0, "comment": "Reply to deleted", "created_at": "2024-01-03"},
    ])

    async with api_client() as client:
        resp = await client.get("/api/products/p1/reviews")

    body = resp.json()
    assert [r["id"] for r in body["reviews"]] == [2, 1]
    assert body["review_count"] == 1
    assert body["average_rating"] == 5.0
