"""
Application configuration

Settings are read from environment variables and an optional ``.env`` file.
``get_settings()`` returns a cached instance for the running process; tests
construct ``Settings(...)`` directly and hand it to ``create_app``.
"""
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """Storefront settings"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=True)

    # Application
    APP_NAME: str = "Storefront Order API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:8080"

    # Database
    DATABASE_URL: str = "sqlite:///./storefront.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    # Identity
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    # Payment gateway
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_API_URL: str = "https://api.razorpay.com/v1"
    PAYMENT_CURRENCY: str = "INR"
    GATEWAY_TIMEOUT_SECONDS: float = 10.0

    # Business rules
    CANCELLATION_WINDOW_HOURS: int = 12
    RETURN_WINDOW_DAYS: int = 3
    REFUND_ESTIMATED_DAYS: int = 7
    STOCK_FLOOR_ENFORCED: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"
    LOG_DIR: Optional[str] = None

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unsupported log level: {v}")
        return level

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in ("text", "json"):
            raise ValueError("LOG_FORMAT must be 'text' or 'json'")
        return fmt

    @property
    def cors_origins(self) -> List[str]:
        # kept as a plain comma separated string so the env source never JSON-decodes it
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings"""
    return Settings()
