"""Configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Error responses settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="ERROR_RESPONSES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Correlation
    request_id_header: str = "X-Request-ID"

    # Error payloads
    media_type: str = "application/json"
    unexpected_error_type: str = "UnexpectedError"
    unexpected_error_detail: str = Field(
        default="Internal server error, please, contact administrator",
        description="Detail sent for unmapped exceptions, must not leak internals",
    )
    error_status_threshold: int = Field(
        default=400,
        ge=100,
        le=599,
        description="Lowest status intercepted when a response has no body",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
