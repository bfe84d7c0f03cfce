"""
Application configuration.

Settings are read from environment variables (or a local ``.env`` file)
so secrets and deployment-specific values never live in the code.
"""

from functools import lru_cache
from typing import List, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "dev-secret-change-in-production"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    # Database Configuration
    database_url: str = "sqlite:///./restaurant_pos.db"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    log_sql_queries: bool = False

    # JWT Authentication - MUST be overridden in production
    jwt_secret_key: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24

    # Accepts a JSON list or a comma-separated string
    cors_origins: Union[List[str], str] = ["http://localhost:3000", "http://localhost:5173"]

    # Environment Settings
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Real-time order feed
    websocket_send_timeout_seconds: float = 2.0

    # IANA timezone name used to decide when the daily order number resets.
    # Empty string means the server's local time.
    order_counter_timezone: str = ""

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Returns:
        Settings instance with environment variables loaded
    """
    return Settings()


def validate_production_config(settings: Settings) -> None:
    """Refuse insecure configuration when running in production."""
    if not settings.is_production:
        return

    security_issues = []

    if settings.jwt_secret_key == DEFAULT_JWT_SECRET:
        security_issues.append("JWT_SECRET_KEY is using default value")

    if settings.debug:
        security_issues.append("DEBUG is enabled in production")

    if security_issues:
        raise ValueError(
            f"Production security issues detected: {', '.join(security_issues)}"
        )
