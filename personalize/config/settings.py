"""Process-wide defaults loaded from the environment."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

OPENAI_CHAT_COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"


class Settings(BaseSettings):
    """Engine settings.

    Every value can be overridden with a ``PERSONALIZE_``-prefixed
    environment variable, e.g. ``PERSONALIZE_DEFAULT_MODEL=gpt-4o``.
    Per-request AI configuration (see ``ModelConfig``) falls back to
    these values for anything the caller leaves out.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERSONALIZE_",
        env_file=".env",
        extra="ignore",
    )

    # Model endpoint
    openai_base_url: str = Field(default=OPENAI_CHAT_COMPLETIONS_URL)
    default_model: str = Field(default="gpt-4o-mini")
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    default_max_tokens: int = Field(default=500, ge=1)
    default_timeout_ms: int = Field(default=5000, ge=1)
    default_max_retries: int = Field(default=1, ge=0)
    retry_base_delay_ms: int = Field(default=500, ge=0)

    # Decision cache
    default_cache_duration_ms: int = Field(default=3_600_000, ge=0)

    # Visit history
    default_decay_rate: float = Field(default=0.9, gt=0.0, le=1.0)
    default_max_history_size: int = Field(default=10, ge=1)
    default_max_weighted: int = Field(default=5, ge=1)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="'console' or 'json'")


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
