"""
Application Settings
Load from environment variables
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, Optional


class Settings(BaseSettings):
    """Application settings from environment"""

    # ======================
    # Database
    # ======================
    DATABASE_URL: str = "sqlite+aiosqlite:///./networth.db"
    AUTO_CREATE_TABLES: bool = False

    # ======================
    # Application
    # ======================
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # ======================
    # Currency
    # ======================
    DEFAULT_CURRENCY: str = "USD"

    # ======================
    # FX provider
    # ======================
    FX_PROVIDER: str = "exchangerate_api"
    FX_API_BASE_URL: str = "https://v6.exchangerate-api.com"
    FX_FREE_API_BASE_URL: str = "https://api.exchangerate-api.com"
    FX_API_KEY: Optional[str] = None
    FX_RATE_CACHE_TTL_SECONDS: int = 300
    FX_REQUEST_TIMEOUT_SECONDS: float = 10.0
    # "EUR/USD": 1.1 style map, used by the static provider
    FX_STATIC_RATES: Dict[str, float] = {}

    # ======================
    # Redis
    # ======================
    REDIS_ENABLED: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PREFIX: str = "fx:"

    # ======================
    # Pydantic v2 config
    # ======================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="forbid",
    )


settings = Settings()
