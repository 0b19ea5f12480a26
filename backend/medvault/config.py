"""
Application configuration management.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        JWT_SECRET: Secret used to verify bearer tokens issued by the auth service
        JWT_ALGORITHM: Signing algorithm of those tokens
        STORAGE_ROOT: Directory holding one sub-directory per document owner
        DATABASE_URL: SQLAlchemy URL of the metadata database
        STATS_TIMEZONE: IANA zone used for "today" and "this month" boundaries
        TREND_MONTHS: Default window for monthly upload trends
        MAX_FILE_SIZE: Largest accepted upload in bytes
        KEY_COLLISION_RETRIES: Attempts to find a free storage key per upload
        MASK_FORBIDDEN_AS_NOT_FOUND: Report denied document access as 404
        SEED_DEFAULT_CATEGORIES: Insert the default categories on first start
        AUDIT_LOG_PROJECT_ID: GCP project receiving audit events (optional)
        LOG_LEVEL: Root log level
        CORS_ORIGINS: Origins allowed to call the API from a browser
    """
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    STORAGE_ROOT: str = "./uploads"
    DATABASE_URL: str = "sqlite:///./medvault.db"
    STATS_TIMEZONE: str = "UTC"
    TREND_MONTHS: int = 6
    MAX_FILE_SIZE: int = 10 * 1024 * 1024
    KEY_COLLISION_RETRIES: int = 5
    MASK_FORBIDDEN_AS_NOT_FOUND: bool = True
    SEED_DEFAULT_CATEGORIES: bool = True
    AUDIT_LOG_PROJECT_ID: Optional[str] = None
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()
