"""Runtime configuration, environment-driven.

Centralized settings using pydantic-settings.  Reads from a .env file and
DEXPRESS_* environment variables.  The Supabase and OpenAI credentials are
also accepted under their plain names (SUPABASE_URL, SUPABASE_KEY,
OPENAI_API_KEY) so an existing deployment environment keeps working.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProdConfig(BaseSettings):
    """Service configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export DEXPRESS_ENVIRONMENT=production
        export DEXPRESS_STORE_BACKEND=supabase
        export SUPABASE_URL=https://xyz.supabase.co
        export SUPABASE_KEY=service-role-key

    Or via .env file::

        DEXPRESS_LOG_LEVEL=DEBUG
        DEXPRESS_DB_PATH=/data/dexpress.db
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DEXPRESS_",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Storage
    store_backend: Literal["sqlite", "supabase"] = "sqlite"
    db_path: Path = Path(".dexpress/dexpress.db")
    supabase_url: str = Field(
        "", validation_alias=AliasChoices("DEXPRESS_SUPABASE_URL", "SUPABASE_URL")
    )
    supabase_key: str = Field(
        "", validation_alias=AliasChoices("DEXPRESS_SUPABASE_KEY", "SUPABASE_KEY")
    )

    # Chat passthrough
    openai_api_key: str = Field(
        "", validation_alias=AliasChoices("DEXPRESS_OPENAI_API_KEY", "OPENAI_API_KEY")
    )
    chat_completions_url: str = "https://api.openai.com/v1/chat/completions"
    chat_default_model: str = "gpt-4o-mini"
    chat_default_max_tokens: int = 600
    chat_timeout_seconds: float = 60.0

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8787
    cors_origins: list[str] = ["*"]

    # Projects
    domain_suffix: str = ".dexpress.app"

    # Build simulation
    stage_delay_base_ms: int = 700
    stage_delay_jitter_ms: int = 1000
    build_timeout_seconds: float = 300.0
    stale_run_seconds: float = 900.0
    stream_poll_interval_seconds: float = 0.5

    # Local identity: bearer token -> user id.  Development only.
    dev_tokens: dict[str, str] = {}

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"

    @property
    def chat_enabled(self) -> bool:
        return bool(self.openai_api_key)


# Module-level singleton: import as `from dexpress.config import config`
config = ProdConfig()
