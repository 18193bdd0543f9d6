"""
Pytest configuration and fixtures for Agribridge tests.
"""
import os
import pytest
from unittest.mock import AsyncMock

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["SUPABASE_URL"] = "https://test-project.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["CART_STORAGE_BACKEND"] = "memory"
os.environ.pop("CART_STORAGE_PREFIX", None)

from agribridge.core.kv_storage import InMemoryStorage
from agribridge.schemas.identity import Identity
from agribridge.services.cart_store import CartStore

# Session tokens the mocked Supabase auth accepts
SESSIONS = {
    "token-u1": {"id": "u1", "email": "ama@example.com"},
    "token-u2": {"id": "u2", "email": "yaw@example.com"},
}


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def identity() -> Identity:
    return Identity(
        user_id="u1",
        email="ama@example.com",
        full_name="Ama Mensah",
        phone_number="+233200000000",
        country="Ghana",
    )


@pytest.fixture
def cart(storage, identity) -> CartStore:
    return CartStore(storage, identity=identity)


@pytest.fixture
def tomatoes() -> dict:
    return {
        "id": "p1",
        "name": "Tomatoes",
        "price": 10.0,
        "unit": "crate",
        "farmer": {"full_name": "Kofi Boateng"},
    }


@pytest.fixture
def yams() -> dict:
    return {"id": "p2", "name": "Yams", "price": 7.5}


@pytest.fixture
def mock_data_store() -> AsyncMock:
    """Remote data store with happy-path defaults."""
    store = AsyncMock()
    store.fetch_auth_user = AsyncMock(side_effect=lambda token: SESSIONS.get(token))
    store.fetch_reviews = AsyncMock(return_value=[])
    store.insert_review = AsyncMock()
    store.fetch_profile = AsyncMock(return_value={
        "id": "u1",
        "full_name": "Ama Mensah",
        "phone_number": "+233200000000",
        "country": "Ghana",
        "role": "customer",
        "avatar_url": None,
    })
    store.fetch_profiles = AsyncMock(return_value=[])
    store.fetch_existing_product_ids = AsyncMock(return_value=["p1", "p2"])
    store.insert_order = AsyncMock(return_value={
        "id": "ord-0001-aaaa-bbbb",
        "user_id": "u1",
        "total_amount": 0,
        "status": "Order Placed",
    })
    store.insert_order_items = AsyncMock(return_value=None)
    store.delete_order = AsyncMock(return_value=None)
    store.fetch_order = AsyncMock(return_value=None)
    store.fetch_order_status_history = AsyncMock(return_value=[])
    store.increment_times_in_cart = AsyncMock(return_value=None)
    store.increment_product_sold_count = AsyncMock(return_value=None)
    return store
