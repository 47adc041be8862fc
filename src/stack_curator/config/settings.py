# src/stack_curator/config/settings.py
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """
    Single source of truth for curator settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    The stack document may still override the region per run.

    Usage:
        from stack_curator.config import get_settings
        settings = get_settings()
        max_wait = settings.wait_max_duration
    """

    # AWS Core Settings
    aws_region: Optional[str] = Field(
        default=None,
        alias="AWS_DEFAULT_REGION",
        description="Fallback region when the stack document has none"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL",
        description="Custom endpoint for local AWS emulators"
    )

    # IAM role assumption
    role_session_prefix: str = Field(
        default="instance-stack-curator",
        description="Prefix of the STS role session name"
    )

    # Waiter defaults (seconds)
    wait_min_delay: float = Field(
        default=15.0,
        description="Minimum delay between waiter attempts"
    )

    wait_max_delay: float = Field(
        default=60.0,
        description="Maximum delay between waiter attempts"
    )

    wait_max_duration: float = Field(
        default=600.0,
        description="Maximum total time a single wait may take"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, v):
        """Accept lower-case level names from the environment."""
        if isinstance(v, str):
            return v.upper()
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
