# restbridge/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .auth import AuthStrategyType
from .types import CacheMode


class ClientSettings(BaseSettings):
    """
    Manages user-configurable settings for the restbridge client, primarily
    loaded from environment variables (prefixed ``RESTBRIDGE_``) or a .env file.

    The settings cover the API location, the OAuth credentials used to obtain
    bearer tokens, caching, and the behaviour of the default httpx transport.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "secrets.env"),  # Look in both .env and secrets.env
        env_file_encoding="utf-8",
        env_prefix="RESTBRIDGE_",
        extra="ignore",  # Ignore extra fields found in environment
        case_sensitive=False,  # Allow flexible casing in environment variables
    )

    # --- API Settings ---
    base_url: str | None = Field(
        default=None, description="Base URL of the API server, without trailing slash"
    )
    cache_mode: CacheMode = Field(
        default=CacheMode.NONE,
        description="Caching strategy: 0=NONE, 1=GET, 2=TOKEN, 3=ALL, 4=REFRESH",
    )

    # --- Authentication Settings ---
    auth_type: AuthStrategyType = Field(
        default=AuthStrategyType.CLIENT_CREDENTIALS,
        description="OAuth grant used to obtain access tokens",
    )
    client_id: str | None = Field(default=None, description="OAuth client ID")
    client_secret: str | None = Field(default=None, description="OAuth client secret")
    username: str | None = Field(
        default=None, description="Resource owner username (owner_credentials only)"
    )
    password: str | None = Field(
        default=None, description="Resource owner password (owner_credentials only)"
    )
    auth_url: str | None = Field(
        default=None, description="Token endpoint URL (api_gateway only)"
    )
    token_resource: str = Field(
        default="token", description="Token endpoint path relative to the base URL"
    )
    refresh_resource: str = Field(
        default="token", description="Refresh endpoint path relative to the base URL"
    )

    # --- Transport Settings ---
    request_timeout: float = Field(
        default=30.0, description="Default request timeout in seconds"
    )
    max_retries: int = Field(
        default=3,
        description="Maximum number of retries for requests failing with a transport error",
    )
    backoff_factor: float = Field(
        default=0.5, description="Backoff factor for retries (seconds)"
    )
    user_agent: str = Field(
        default="restbridge/0.1.0",
        description="User-Agent header for requests",
    )
    max_workers: int = Field(
        default=8, description="Maximum number of requests sent concurrently"
    )

    # --- Caching Settings ---
    cache_max_size: int = Field(
        default=128, description="Maximum number of items in the in-memory cache"
    )
    cache_ttl_seconds: int | None = Field(
        default=300,
        description="Default TTL for cached responses in seconds; tokens use their own expiry",
    )


@lru_cache
def get_settings() -> ClientSettings:
    """
    Provides access to the client settings.

    Settings are loaded from environment variables or .env/secrets.env files.
    The instance is cached for performance.

    Returns:
        ClientSettings: The settings instance.
    """
    return ClientSettings()
