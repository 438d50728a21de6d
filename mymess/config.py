"""
Application configuration using Pydantic Settings
"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """
    # MyMess backend
    MESS_API_BASE_URL: str = "http://localhost:8080"

    # Resilient fetch
    FETCH_MAX_ATTEMPTS: int = 3
    FETCH_INITIAL_DELAY: float = 1.0  # seconds, multiplied by 1.5 per retry
    FETCH_TIMEOUT: float = 10.0

    # Concurrent profile lookups during a reconciliation pass
    PROFILE_FANOUT_WORKERS: int = 8

    # Payments
    JOIN_INITIAL_PAYMENT: str = "500"
    CURRENCY: str = "INR"

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def get_api_base_url(self) -> str:
        """
        Base URL without the trailing slash (paths are appended as "/...")
        """
        return self.MESS_API_BASE_URL.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance (singleton)
    """
    return Settings()
