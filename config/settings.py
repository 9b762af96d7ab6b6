"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    PROFILE_DB_PATH: str = Field(default="data/profiles.db")

    DEFAULT_QUESTION_COUNT: int = Field(default=5, ge=1, le=20)
    MIN_VIABLE_QUESTIONS: int = Field(default=1, ge=1)
    MIN_VIABLE_ANALYSES: int = Field(default=1, ge=1)
    NOT_ANSWERED_TEXT: str = "(not answered)"

    PROVIDER_TIMEOUT_S: float = Field(default=60.0, gt=0.0)
    PROVIDER_MAX_RETRIES: int = Field(default=2, ge=0)
    RETRY_BACKOFF_S: float = Field(default=0.35, ge=0.0)

    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com"
    GEMINI_MODEL: str = "gemini-3-flash-preview"
    DEEPSEEK_BASE_URL: str = "https://api.deepseek.com"
    DEEPSEEK_MODEL: str = "deepseek-chat"

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True)


settings = Settings()
