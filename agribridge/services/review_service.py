"""
Review service

Fetches a product's reviews with their authors and posts new reviews and
replies. Posting is two independent steps:
1. apply the created row to the current tree locally (optimistic insert)
2. re-fetch and replace the whole tree with the server's version
"""
import logging
from typing import Any, Dict, List, Optional

from agribridge.adapters.supabase_client import RemoteDataStore
from agribridge.core.exceptions import (
    AuthenticationRequiredError,
    DataStoreError,
    ReviewValidationError,
)
from agribridge.schemas.identity import Identity
from agribridge.schemas.review import ANONYMOUS_AUTHOR, AuthorSnapshot, ReviewNode
from agribridge.services.review_tree import build_review_tree, insert_review_node

logger = logging.getLogger(__name__)


class ReviewService:
    def __init__(self, data_store: RemoteDataStore):
        self.data_store = data_store

    async def _author_snapshots(self, user_ids: List[Any]) -> Dict[Any, Dict[str, Any]]:
        """Profiles by id; a failed lookup leaves every author anonymous."""
        if not user_ids:
            return {}
        try:
            profiles = await self.data_store.fetch_profiles(user_ids)
        except DataStoreError as e:
            logger.warning(f"Profile lookup failed, showing reviews as anonymous: {e}")
            return {}
        return {profile["id"]: profile for profile in profiles if "id" in profile}

    async def fetch_tree(self, product_id: Any) -> List[ReviewNode]:
        """
        Authoritative review tree for a product.

        Raises:
            DataStoreError: reviews could not be fetched
        """
        rows = await self.data_store.fetch_reviews(product_id)
        if not rows:
            return []

        user_ids = list(dict.fromkeys(row.get("user_id") for row in rows if row.get("user_id")))
        profiles = await self._author_snapshots(user_ids)

        combined = [
            {**row, "user": profiles.get(row.get("user_id")) or ANONYMOUS_AUTHOR.model_dump()}
            for row in rows
        ]
        return build_review_tree(combined)

    async def submit(
        self,
        identity: Optional[Identity],
        product_id: Any,
        comment: str,
        rating: int = 0,
        parent_id: Any = None,
        image_url: Optional[str] = None,
    ) -> ReviewNode:
        """
        Insert a review (or a reply when parent_id is set).

        Returns the created row as a node ready for insert_review_node.

        Raises:
            AuthenticationRequiredError: no identity
            ReviewValidationError: missing rating on a review, blank comment
            DataStoreError: insert failed
        """
        if identity is None:
            raise AuthenticationRequiredError("You must be logged in to leave a review.")

        is_reply = parent_id is not None and parent_id != ""
        if not is_reply and not 1 <= (rating or 0) <= 5:
            raise ReviewValidationError("Please select a star rating.", field="rating")
        if not comment or not comment.strip():
            raise ReviewValidationError("Please write something.", field="comment")

        payload = {
            "user_id": identity.user_id,
            "product_id": product_id,
            "rating": 0 if is_reply else rating,
            "comment": comment,
            "image_url": image_url,
            "parent_id": parent_id if is_reply else None,
        }
        row = await self.data_store.insert_review(payload)

        return ReviewNode.model_validate({
            **row,
            "user": (await self._current_author(identity)).model_dump(),
            "replies": [],
        })

    async def _current_author(self, identity: Identity) -> AuthorSnapshot:
        """Fresh profile so the optimistic node shows the right role."""
        profile: Dict[str, Any] = {}
        try:
            profile = await self.data_store.fetch_profile(identity.user_id) or {}
        except DataStoreError as e:
            logger.warning(f"Could not load profile for {identity.user_id}: {e}")
        return AuthorSnapshot(
            id=identity.user_id,
            full_name=profile.get("full_name") or identity.full_name or "Me",
            avatar_url=profile.get("avatar_url") or identity.avatar_url,
            role=profile.get("role") or identity.role or "customer",
        )

    async def post_and_refresh(
        self,
        tree: List[ReviewNode],
        identity: Optional[Identity],
        product_id: Any,
        comment: str,
        rating: int = 0,
        parent_id: Any = None,
        image_url: Optional[str] = None,
    ) -> List[ReviewNode]:
        """
        Submit, apply locally, then replace with the server's tree.

        If the refresh fails the optimistic tree is returned.
        """
        node = await self.submit(identity, product_id, comment, rating, parent_id, image_url)
        optimistic = insert_review_node(tree, node)

        try:
            return await self.fetch_tree(product_id)
        except DataStoreError as e:
            logger.warning(f"Review refresh failed for product {product_id}, keeping local tree: {e}")
            return optimistic
