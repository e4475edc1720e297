"""Settings for the TechBlog API client."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Client configuration loaded from environment variables."""

    base_url: str = Field(default="http://localhost:8000/api/v1", alias="TECHBLOG_API_URL")
    timeout_seconds: float = Field(default=10.0, alias="TECHBLOG_API_TIMEOUT")

    # Cache windows: data younger than stale_seconds is served without a refetch,
    # entries unused for cache_seconds are evicted.
    stale_seconds: float = Field(default=5 * 60, alias="TECHBLOG_STALE_SECONDS")
    cache_seconds: float = Field(default=10 * 60, alias="TECHBLOG_CACHE_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        populate_by_name=True,
        extra="ignore",
    )
