"""
Supabase data store client

Talks to the project's PostgREST endpoint (/rest/v1), its RPC functions
and the auth user endpoint (/auth/v1/user) with httpx. Every failure
surfaces as DataStoreError carrying the PostgREST error code (e.g. 23503
for a foreign-key violation).

Tables used: product_reviews, profiles, products, orders, order_items,
order_status_history.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol

import httpx

from agribridge.core.config import settings
from agribridge.core.exceptions import DataStoreError

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "id,full_name,avatar_url,role"


class RemoteDataStore(Protocol):
    """The remote CRUD boundary the services depend on."""

    async def fetch_auth_user(self, access_token: str) -> Optional[Dict[str, Any]]: ...

    async def fetch_reviews(self, product_id: Any) -> List[Dict[str, Any]]: ...

    async def insert_review(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def fetch_profile(self, user_id: Any) -> Optional[Dict[str, Any]]: ...

    async def fetch_profiles(self, user_ids: Iterable[Any]) -> List[Dict[str, Any]]: ...

    async def fetch_existing_product_ids(self, product_ids: Iterable[Any]) -> List[Any]: ...

    async def insert_order(self, order: Dict[str, Any]) -> Dict[str, Any]: ...

    async def insert_order_items(self, items: List[Dict[str, Any]]) -> None: ...

    async def delete_order(self, order_id: Any) -> None: ...

    async def fetch_order(self, order_id: Any) -> Optional[Dict[str, Any]]: ...

    async def fetch_order_status_history(self, order_id: Any) -> List[Dict[str, Any]]: ...

    async def increment_times_in_cart(self, product_id: Any) -> None: ...

    async def increment_product_sold_count(self, product_id: Any, quantity: int) -> None: ...


def _in_filter(values: Iterable[Any]) -> str:
    quoted = ",".join('"{}"'.format(str(v).replace('"', '\\"')) for v in values)
    return f"in.({quoted})"


class SupabaseDataStore:
    """PostgREST client for the Agribridge Supabase project."""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = (url or settings.SUPABASE_URL).rstrip("/")
        self.api_key = api_key or settings.SUPABASE_ANON_KEY
        self.access_token = access_token
        self.timeout = timeout or settings.SUPABASE_TIMEOUT_SECONDS
        self._http_client = http_client

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {access_token or self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self):
        """Close HTTP client on shutdown."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def for_session(self, access_token: str) -> "SupabaseDataStore":
        """
        Store that acts as the signed-in user (row level security applies).

        Shares this store's HTTP client; only the owning store closes it.
        """
        return SupabaseDataStore(
            url=self.url,
            api_key=self.api_key,
            access_token=access_token,
            timeout=self.timeout,
            http_client=await self._get_http_client(),
        )

    async def _request(
        self,
        method: str,
        path: str,
        resource: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
        api: str = "rest",
        access_token: Optional[str] = None,
    ) -> Any:
        client = await self._get_http_client()
        headers = self._headers(access_token)
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = await client.request(
                method,
                f"{self.url}/{api}/v1/{path}",
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Supabase {method} {resource} failed: {e}")
            raise DataStoreError(f"Could not reach the data store ({resource})", resource=resource) from e

        if response.status_code >= 400:
            remote_code = None
            message = response.text
            try:
                body = response.json()
                remote_code = body.get("code")
                message = body.get("message") or message
            except ValueError:
                pass
            logger.error(
                f"Supabase {method} {resource} returned {response.status_code} "
                f"code={remote_code}: {message}"
            )
            raise DataStoreError(
                message or f"{resource} request failed",
                resource=resource,
                remote_code=remote_code,
                http_status=response.status_code,
            )

        if not response.content:
            return None
        return response.json()

    # ----- Auth -----

    async def fetch_auth_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """
        User behind a Supabase session token, or None when the token is
        rejected (expired, revoked or forged).
        """
        try:
            return await self._request(
                "GET",
                "user",
                "auth",
                api="auth",
                access_token=access_token,
            )
        except DataStoreError as e:
            if e.details.get("http_status") in (401, 403):
                logger.info("Rejected session token")
                return None
            raise

    # ----- Reviews -----

    async def fetch_reviews(self, product_id: Any) -> List[Dict[str, Any]]:
        rows = await self._request(
            "GET",
            "product_reviews",
            "product_reviews",
            params={
                "select": "*",
                "product_id": f"eq.{product_id}",
                "order": "created_at.asc",
            },
        )
        return rows or []

    async def insert_review(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._request(
            "POST",
            "product_reviews",
            "product_reviews",
            json=payload,
            prefer="return=representation",
        )
        if not rows:
            raise DataStoreError("Review insert returned no row", resource="product_reviews")
        return rows[0]

    # ----- Profiles -----

    async def fetch_profile(self, user_id: Any) -> Optional[Dict[str, Any]]:
        rows = await self._request(
            "GET",
            "profiles",
            "profiles",
            params={"select": "*", "id": f"eq.{user_id}", "limit": "1"},
        )
        return rows[0] if rows else None

    async def fetch_profiles(self, user_ids: Iterable[Any]) -> List[Dict[str, Any]]:
        user_ids = list(user_ids)
        if not user_ids:
            return []
        rows = await self._request(
            "GET",
            "profiles",
            "profiles",
            params={"select": PROFILE_COLUMNS, "id": _in_filter(user_ids)},
        )
        return rows or []

    # ----- Products -----

    async def fetch_existing_product_ids(self, product_ids: Iterable[Any]) -> List[Any]:
        product_ids = list(product_ids)
        if not product_ids:
            return []
        rows = await self._request(
            "GET",
            "products",
            "products",
            params={"select": "id", "id": _in_filter(product_ids)},
        )
        return [row["id"] for row in rows or []]

    async def increment_times_in_cart(self, product_id: Any) -> None:
        await self._request(
            "POST",
            "rpc/increment_times_in_cart",
            "increment_times_in_cart",
            json={"p_product_id": product_id},
        )

    async def increment_product_sold_count(self, product_id: Any, quantity: int) -> None:
        await self._request(
            "POST",
            "rpc/increment_product_sold_count",
            "increment_product_sold_count",
            json={"p_product_id": product_id, "p_quantity": quantity},
        )

    # ----- Orders -----

    async def insert_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._request(
            "POST",
            "orders",
            "orders",
            json=order,
            prefer="return=representation",
        )
        if not rows:
            raise DataStoreError("Order insert returned no row", resource="orders")
        return rows[0]

    async def insert_order_items(self, items: List[Dict[str, Any]]) -> None:
        await self._request(
            "POST",
            "order_items",
            "order_items",
            json=items,
            prefer="return=minimal",
        )

    async def delete_order(self, order_id: Any) -> None:
        await self._request(
            "DELETE",
            "orders",
            "orders",
            params={"id": f"eq.{order_id}"},
        )

    async def fetch_order(self, order_id: Any) -> Optional[Dict[str, Any]]:
        rows = await self._request(
            "GET",
            "orders",
            "orders",
            params={"select": "*", "id": f"eq.{order_id}", "limit": "1"},
        )
        return rows[0] if rows else None

    async def fetch_order_status_history(self, order_id: Any) -> List[Dict[str, Any]]:
        rows = await self._request(
            "GET",
            "order_status_history",
            "order_status_history",
            params={
                "select": "*",
                "order_id": f"eq.{order_id}",
                "order": "created_at.desc",
            },
        )
        return rows or []


# Global client (connection reused across requests)
supabase_store = SupabaseDataStore()
