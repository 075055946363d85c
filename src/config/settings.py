"""
Taste engine settings (pydantic-settings).

Every knob is an environment variable (case-insensitive) or a line in
.env. Storage falls back to in-memory when Supabase is not configured.
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Optional environment variables:
        - SUPABASE_URL / SUPABASE_SERVICE_KEY: remote identity store.
          When either is empty the in-memory stores are used.
        - STORAGE_BACKEND: auto, memory or supabase (default: auto)
        - ANCHOR_HOLD_DAYS: hold window for anchor votes (default: 14)
        - ADVISORY_LEVEL: default strictness preset (default: standard)
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

    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ==========================================================================
    # Supabase Configuration
    # ==========================================================================
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service role key")

    storage_backend: str = Field(
        default="auto",
        description="Identity/event storage: auto, memory or supabase"
    )

    @field_validator("storage_backend", mode="before")
    @classmethod
    def parse_storage_backend(cls, v):
        value = str(v or "auto").lower().strip()
        if value not in ("auto", "memory", "supabase"):
            raise ValueError(f"Unknown storage backend: {v}")
        return value

    @property
    def use_supabase(self) -> bool:
        if self.storage_backend == "memory":
            return False
        if self.storage_backend == "supabase":
            return True
        return bool(self.supabase_url and self.supabase_service_key)

    # ==========================================================================
    # Taste Engine
    # ==========================================================================
    anchor_hold_days: int = Field(
        default=14,
        ge=0,
        description="Days an anchor-category vote is held before it is applied"
    )
    advisory_level: str = Field(
        default="standard",
        description="Default advisory strictness preset: soft, standard or strict"
    )
    events_page_limit: int = Field(
        default=50,
        ge=1,
        le=200,
        description="Default page size when listing events"
    )
    max_write_attempts: int = Field(
        default=3,
        ge=1,
        description="Optimistic-concurrency retries for identity writes"
    )


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read once from the environment and the repo-root .env."""
    env_file = ENV_FILE if ENV_FILE.exists() else None
    return Settings(_env_file=env_file)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Uncached settings for tests: in-memory storage, no .env, debug on.
    Keyword overrides win over the test defaults.
    """
    test_defaults = {
        "environment": "testing",
        "debug": True,
        "storage_backend": "memory",
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)
