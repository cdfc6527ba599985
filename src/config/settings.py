"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


SESSION_STORE_BACKENDS = ("memory", "supabase")
CATALOG_PROVIDERS = ("spotify", "lastfm")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Nothing is strictly required: the default deployment keeps swipe
    sessions in memory and talks to Spotify with a static dev token.

    Optional environment variables:
        - HOST: Server host (default: 0.0.0.0)
        - PORT: Server port (default: 8080)
        - SESSION_STORE_BACKEND: memory | supabase
        - CATALOG_PROVIDER: spotify | lastfm
        - SUPABASE_URL / SUPABASE_SERVICE_KEY: required for the supabase backend
        - SUPABASE_JWT_SECRET: required for authenticated routes
        - ENVIRONMENT: Environment name (development, staging, production)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    cors_origins: Annotated[List[str], NoDecode] = Field(
        default=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str) and v.strip().startswith("["):
            return json.loads(v)
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ==========================================================================
    # Supabase Configuration
    # ==========================================================================
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service role key")
    supabase_jwt_secret: str = Field(default="", description="JWT secret for token verification")
    swipe_sessions_table: str = Field(
        default="swipe_sessions",
        description="Table holding swipe session rows"
    )

    # ==========================================================================
    # Swipe Sessions
    # ==========================================================================
    session_store_backend: str = Field(
        default="memory",
        description="Swipe session persistence: 'memory' or 'supabase'"
    )
    swipe_conflict_retries: int = Field(
        default=3,
        description="Retries for a swipe whose base version went stale before surfacing Conflict"
    )

    @field_validator("session_store_backend")
    @classmethod
    def validate_session_store_backend(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in SESSION_STORE_BACKENDS:
            raise ValueError(f"session_store_backend must be one of {SESSION_STORE_BACKENDS}")
        return v

    # ==========================================================================
    # Music Catalog
    # ==========================================================================
    catalog_provider: str = Field(
        default="spotify",
        description="Catalog used for candidate expansion: 'spotify' or 'lastfm'"
    )
    spotify_api_base_url: str = Field(
        default="https://api.spotify.com/v1",
        description="Spotify Web API base URL"
    )
    spotify_access_token: str = Field(
        default="",
        description="Static Spotify access token for local/dev use"
    )
    lastfm_api_base_url: str = Field(
        default="https://ws.audioscrobbler.com/2.0",
        description="Last.fm API base URL"
    )
    lastfm_api_key: str = Field(default="", description="Last.fm API key")

    @field_validator("catalog_provider")
    @classmethod
    def validate_catalog_provider(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in CATALOG_PROVIDERS:
            raise ValueError(f"catalog_provider must be one of {CATALOG_PROVIDERS}")
        return v

    # ==========================================================================
    # Candidate Pipeline Budgets
    # ==========================================================================
    catalog_request_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for a single catalog call (seconds)"
    )
    generate_budget_seconds: float = Field(
        default=10.0,
        description="Overall budget for one candidate generation (seconds)"
    )
    catalog_max_workers: int = Field(
        default=4,
        description="Parallel catalog calls per generation"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance

    Raises:
        ValidationError: If an environment variable holds an invalid value
    """
    # Try to find .env file in project root
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        os.environ.setdefault("ENV_FILE", str(env_file))

    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "supabase_jwt_secret": "test-jwt-secret",
        "environment": "testing",
        "debug": True,
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)
