"""
Configuration module using Pydantic Settings.

Loads service-level settings (logging, CORS, storage paths, provider
timeouts, session limits) from environment variables. Supports .env files
for local development. The active LLM provider configuration is not part
of these settings; it lives in the JSON file managed by
``codechat.services.ai_config``.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Provider configuration store
    ai_config_path: str = "config/ai.json"

    # Codebase context
    workspace_root: str = "/var/lib/codechat/workspaces"
    context_max_file_bytes: int = 256_000

    # Provider transports
    provider_timeout_seconds: float = 120.0

    # Session store (unset = unbounded)
    session_max_count: int | None = None
    session_ttl_seconds: float | None = None

    # Telemetry
    otel_console_export: bool = False

    # App
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:3000"

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]


@lru_cache
def get_settings() -> Settings:
    """Factory for cached settings instance."""
    return Settings()
