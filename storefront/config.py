"""
Configuration management for the storefront client core
"""
from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Client configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    service_name: str = "storefront"
    log_level: str = "INFO"
    log_json: bool = True

    # Remote API
    api_base_url: str = "http://127.0.0.1:8000/api"
    request_timeout: float = 10.0
    auth_token: Optional[str] = None

    # Pricing
    tax_rate: Decimal = Decimal("0.08")
    free_shipping_threshold: Decimal = Decimal("100")
    flat_shipping_fee: Decimal = Decimal("10")

    # Cache TTLs (milliseconds)
    cache_default_ttl_ms: int = 5 * 60 * 1000
    cart_cache_ttl_ms: int = 5 * 60 * 1000
    user_cache_ttl_ms: int = 15 * 60 * 1000
    checkout_state_ttl_ms: int = 60 * 60 * 1000

    # Checkout
    autosave_debounce_ms: int = 500

    # Cart
    max_item_quantity: int = 10

    # Local persisted state
    storage_path: str = ".storefront/storage.json"


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create configuration singleton"""
    global _config
    if _config is None:
        _config = Config()
    return _config


def load_config() -> Config:
    """Load configuration from environment"""
    return get_config()
