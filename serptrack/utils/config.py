"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Database (SQLite fallback when unset)
    DATABASE_URL: Optional[str] = None
    SQLITE_PATH: str = "serptrack_dev.db"
    SQL_DEBUG: bool = False

    # Serper search provider
    SERPER_URL: str = "https://google.serper.dev/search"
    SERPER_TIMEOUT: float = 20.0
    SERP_API_KEYS: str = ""  # Comma-separated, seeded when no keys are stored

    # Quota estimation
    SERPER_MONTHLY_LIMIT: int = 2500
    SERPER_BASELINE_REMAINING: Optional[int] = None
    SERPER_BASELINE_KEY_NAME: str = ""

    # Search defaults
    DEFAULT_COUNTRY: str = "id"
    DEFAULT_LANGUAGE: str = "id"
    DEFAULT_DEVICE: str = "desktop"
    RESULT_DEPTH: int = 10

    # Classification
    CONTAINS_MATCH_ENABLED: bool = True

    # Manual check cache
    RESULT_CACHE_TTL_SECONDS: int = 120

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
