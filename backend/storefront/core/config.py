from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Cart persistence
    CART_STORAGE_BACKEND: str = "memory"  # memory | mongo
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "storefront_db"
    CART_COLLECTION: str = "carts"

    # Cross-context sync
    SYNC_CHANNEL_NAME: str = "cart-sync"
    SYNC_BACKEND: str = "memory"  # memory | mongo (change streams, needs a replica set)
    SYNC_COLLECTION: str = "cart_events"

    # Stock checks: reservation_aware | per_variant
    STOCK_POLICY: str = "reservation_aware"

    # Application Settings
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Storefront"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
