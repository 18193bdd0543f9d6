"""
Identity schema

The signed-in user plus the profile fields checkout and reviews need.
Authentication itself happens at the external provider.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class Identity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: Any
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    country: Optional[str] = None
    role: str = "customer"
    avatar_url: Optional[str] = None

    @property
    def has_profile(self) -> bool:
        return bool(self.full_name)

    @classmethod
    def from_profile(cls, user_id: Any, profile: Optional[dict], email: Optional[str] = None) -> "Identity":
        profile = profile or {}
        return cls(
            user_id=user_id,
            email=email or profile.get("email"),
            full_name=profile.get("full_name"),
            phone_number=profile.get("phone_number"),
            country=profile.get("country"),
            role=profile.get("role") or "customer",
            avatar_url=profile.get("avatar_url"),
        )
