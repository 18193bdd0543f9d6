"""
Review schemas

Rows from product_reviews arrive flat; the tree form adds `replies`.
Unknown columns (product_id, user_id, image_url, ...) are kept as extras.
"""
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthorSnapshot(BaseModel):
    """Denormalized author profile attached to a review."""
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    full_name: Optional[str] = "Anonymous User"
    avatar_url: Optional[str] = None
    role: Optional[str] = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


ANONYMOUS_AUTHOR = AuthorSnapshot()


class ReviewRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    parent_id: Optional[Any] = None
    created_at: Optional[Any] = None
    rating: int = 0
    comment: Optional[str] = None
    user: Optional[AuthorSnapshot] = None

    @field_validator("rating", mode="before")
    @classmethod
    def coerce_rating(cls, v):
        try:
            rating = int(v)
        except (TypeError, ValueError):
            return 0
        return min(max(rating, 0), 5)

    @field_validator("comment", mode="before")
    @classmethod
    def coerce_comment(cls, v):
        if v is None:
            return None
        return v if isinstance(v, str) else str(v)

    @field_validator("user", mode="before")
    @classmethod
    def coerce_user(cls, v):
        if v is None or isinstance(v, (AuthorSnapshot, dict)):
            return v
        return None


class ReviewNode(ReviewRecord):
    replies: List["ReviewNode"] = Field(default_factory=list)


class ReviewCreate(BaseModel):
    """Review or reply posted by a customer."""
    comment: str
    rating: int = 0
    parent_id: Optional[Any] = None
    image_url: Optional[str] = None


class ReviewTreeResponse(BaseModel):
    product_id: Any
    average_rating: float
    review_count: int
    reviews: List[ReviewNode]
