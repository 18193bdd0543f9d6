"""
Application configuration

Defaults are safe for local development: in-memory cart storage, no
Supabase credentials. Production deployments set SUPABASE_URL and
SUPABASE_ANON_KEY through the environment.
"""
import json
import logging
from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

CART_STORAGE_BACKENDS = ("memory", "file", "redis")


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Agribridge"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Supabase (PostgREST + RPC)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_TIMEOUT_SECONDS: float = 15.0

    # Cart persistence
    CART_STORAGE_PREFIX: str = "agribridge_cart"
    CART_STORAGE_BACKEND: str = "memory"
    CART_STORAGE_PATH: str = "data/carts.json"
    REDIS_URL: str = ""

    @field_validator("CART_STORAGE_BACKEND", mode="before")
    @classmethod
    def normalize_storage_backend(cls, v):
        v = (v or "memory").strip().lower()
        if v not in CART_STORAGE_BACKENDS:
            raise ValueError(
                f"CART_STORAGE_BACKEND must be one of {', '.join(CART_STORAGE_BACKENDS)}"
            )
        return v

    # Checkout
    CURRENCY: str = "GHS"
    WHATSAPP_NUMBER: str = "+233533811757"
    DEFAULT_FARMER_NAME: str = "Agribridge Farm"
    ORDER_PLACED_STATUS: str = "Order Placed"

    # Paystack
    PAYSTACK_PUBLIC_KEY: str = ""
    PAYSTACK_HOME_COUNTRY: str = "Ghana"

    # CORS - accepts JSON array or comma-separated string
    CORS_ORIGINS: Union[str, List[str]] = DEFAULT_CORS_ORIGINS

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            if not v or v.strip() == "":
                return DEFAULT_CORS_ORIGINS
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_ANON_KEY)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()

if settings.is_production and not settings.supabase_configured:
    logger.warning("SUPABASE_URL/SUPABASE_ANON_KEY not set; remote calls will fail")
