"""
Shared configuration management for callkit.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Client configuration, overridable through CALLKIT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CALLKIT_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Remote service
    base_url: str = Field(default="http://localhost:5000/api")
    request_timeout: float = Field(default=30.0, gt=0)

    # Cache
    cache_ttl: float = Field(default=30.0, gt=0)

    # Retry / backoff
    retries: int = Field(default=3, ge=0)
    backoff_base_delay: float = Field(default=1.0, ge=0)
    backoff_max_delay: float = Field(default=10.0, ge=0)


def get_config(**overrides) -> ClientSettings:
    """Get client configuration, applying explicit overrides over the environment."""
    return ClientSettings(**overrides)
