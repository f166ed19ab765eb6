from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True

    # Application
    app_name: str = "Shortlink"
    app_version: str = "1.0.0"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Public base for short links. None = derive from the incoming request.
    base_url: Optional[str] = None

    # Storage backend
    storage_backend: str = "mongodb"  # Options: "mongodb", "sqlalchemy"

    # MongoDB (document store)
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "shortlink"
    mongodb_timeout_ms: int = 5000  # Server selection timeout

    # SQLAlchemy (relational store, used for development and tests)
    database_url: str = "sqlite:///./shortlink.db"

    # Short code allocation
    short_code_length: int = 6
    max_retries: int = 5  # Generation attempts before giving up
    custom_alias_max_length: int = 64
    recent_urls_limit: int = 10

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
