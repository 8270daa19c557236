"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parents[1]

DEFAULT_CANDIDATE_MODELS = [
    "llama-3.1-8b-instant",
    "llama-3.2-3b-preview",
    "gemma2-9b-it",
    "llama-3.2-1b-preview",
]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "QuickShop Support Chat API"
    database_url: str = "sqlite:///./chat.db"
    auto_create_schema: bool = True
    groq_api_key: str | None = None
    groq_base_url: str = "https://api.groq.com/openai/v1"
    candidate_models: list[str] = list(DEFAULT_CANDIDATE_MODELS)
    provider_timeout_seconds: int = 60
    history_limit: int = 6
    max_message_length: int = 1000
    cors_allow_origins: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("candidate_models")
    @classmethod
    def _require_candidates(cls, value: list[str]) -> list[str]:
        cleaned = [item.strip() for item in value if item.strip()]
        if not cleaned:
            raise ValueError("At least one candidate model must be configured.")
        return cleaned


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
