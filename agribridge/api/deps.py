"""
API dependencies

Identity comes from the Supabase session token sent as a bearer token. The
token is verified against Supabase auth and the same token is forwarded on
every data call, so row level security sees the signed-in user. Everything
is injected so tests can override it.
"""
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from agribridge.adapters.supabase_client import RemoteDataStore, supabase_store
from agribridge.core.kv_storage import KeyValueStorage, create_storage
from agribridge.schemas.identity import Identity
from agribridge.services.cart_store import CartStore
from agribridge.services.checkout_service import CheckoutService
from agribridge.services.order_tracking import OrderTracker
from agribridge.services.review_service import ReviewService

security = HTTPBearer(auto_error=False)

_cart_storage: Optional[KeyValueStorage] = None


def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


async def get_data_store(token: Optional[str] = Depends(get_access_token)) -> RemoteDataStore:
    """Anon store for guests, a per-session store for signed-in users"""
    if not token:
        return supabase_store
    return await supabase_store.for_session(token)


def get_cart_storage() -> KeyValueStorage:
    """Shared cart storage, created on first use."""
    global _cart_storage
    if _cart_storage is None:
        _cart_storage = create_storage()
    return _cart_storage


def close_cart_storage() -> None:
    global _cart_storage
    if _cart_storage is not None and hasattr(_cart_storage, "close"):
        _cart_storage.close()
    _cart_storage = None


async def get_optional_identity(
    token: Optional[str] = Depends(get_access_token),
    data_store: RemoteDataStore = Depends(get_data_store),
) -> Optional[Identity]:
    """
    Signed-in identity, None for guests.

    A token that Supabase rejects is a 401, not a guest session.
    """
    if not token:
        return None

    user = await data_store.fetch_auth_user(token)
    if not user or not user.get("id"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )

    profile = await data_store.fetch_profile(user["id"])
    return Identity.from_profile(user["id"], profile, email=user.get("email"))


async def get_current_identity(
    identity: Optional[Identity] = Depends(get_optional_identity),
) -> Identity:
    """Require a signed-in identity"""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return identity


def get_cart(
    identity: Optional[Identity] = Depends(get_optional_identity),
    storage: KeyValueStorage = Depends(get_cart_storage),
) -> CartStore:
    return CartStore(storage, identity=identity)


def get_review_service(data_store: RemoteDataStore = Depends(get_data_store)) -> ReviewService:
    return ReviewService(data_store)


def get_checkout_service(data_store: RemoteDataStore = Depends(get_data_store)) -> CheckoutService:
    return CheckoutService(data_store)


def get_order_tracker(data_store: RemoteDataStore = Depends(get_data_store)) -> OrderTracker:
    return OrderTracker(data_store)
