"""Checkout Service Configuration"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    # Application
    app_name: str = "Storefront Checkout"
    debug: bool = True
    host: str = "0.0.0.0"
    port: int = 8000

    # Storefront API
    store_api_url: str = "http://localhost:3000"
    store_timeout: float = 30.0

    # QR proof of payment
    proof_window_seconds: int = 15 * 60
    countdown_interval: float = 1.0
    result_transition_delay: float = 1.5
    max_slip_bytes: int = 5 * 1024 * 1024

    # Sessions
    session_max_age_hours: int = 24

    # Where the UI should go when checkout cannot continue
    orders_path: str = "/orders"
    products_path: str = "/products"
    login_path: str = "/login"

    class Config:
        env_file = "config/.env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
