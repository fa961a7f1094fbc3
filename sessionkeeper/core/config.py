"""
Application configuration using Pydantic Settings.

Configuration values can be set via environment variables or .env file.
"""

from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "SessionKeeper"
    version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    dev_mode: bool = False
    host: str = "0.0.0.0"
    port: int = 8500
    log_level: str = "INFO"

    database_url: str = "sqlite:///./sessionkeeper.db"
    cors_origins: List[str] = ["http://localhost:8500", "http://localhost:3000"]

    # Session cookie and lifetime
    session_cookie_name: str = "session"
    session_cookie_ttl: int = 86400
    session_ttl: int = 3600
    session_cookie_path: str = "/"
    session_cookie_samesite: str = "lax"
    session_cookie_secure: bool = False
    session_refresh_threshold: float = 0.5

    # Fingerprint fallback
    session_use_fingerprint: bool = False
    fingerprint_strategy: str = "exact"
    fingerprint_min_score: float = 0.8
    fingerprint_max_candidates: int = 10
    trust_forwarded_for: bool = False

    # Rate limiting configuration
    rate_limit_admin_endpoints: str = "5/minute"
    rate_limit_read_endpoints: str = "100/minute"

    # Optional Redis URL for distributed rate limiting
    # When set, rate limits will be shared across multiple instances
    redis_url: Optional[str] = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        """Accept a comma-separated string as well as a JSON list"""
        if isinstance(value, str) and not value.strip().startswith("["):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("fingerprint_strategy")
    @classmethod
    def validate_strategy(cls, value: str) -> str:
        value = value.lower()
        if value not in ("exact", "scored"):
            raise ValueError("fingerprint_strategy must be 'exact' or 'scored'")
        return value

    @field_validator("session_ttl", "session_cookie_ttl")
    @classmethod
    def validate_positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("TTL values must be positive")
        return value


# Global settings instance
settings = Settings()
