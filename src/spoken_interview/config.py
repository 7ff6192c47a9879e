"""
Application configuration using pydantic-settings.

Loads configuration from environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Gemini (primary question generation / evaluation)
    gemini_api_key: str = Field(default="", description="Google Gemini API key")
    gemini_model: str = Field(default="gemini-2.0-flash", description="Gemini model name")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL",
    )

    # OpenRouter (fallback question generation / evaluation)
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    openrouter_model: str = Field(
        default="meta-llama/llama-3.3-70b-instruct:free",
        description="OpenRouter model identifier",
    )
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenRouter API base URL",
    )

    # Sarvam (text-to-speech)
    sarvam_api_key: str = Field(default="", description="Sarvam AI API subscription key")
    sarvam_base_url: str = Field(default="https://api.sarvam.ai", description="Sarvam API base URL")
    sarvam_model: str = Field(default="bulbul:v2", description="Sarvam TTS model")
    sarvam_language_code: str = Field(default="en-IN", description="Target language for speech")
    voice_id: str = Field(default="anushka", description="Speaker voice used for questions")

    # Provider call policy
    provider_timeout_s: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for a single provider attempt",
    )
    provider_transient_retries: int = Field(
        default=1,
        ge=0,
        description="Retries against the same provider after a transient (5xx/429) error",
    )

    # Interview pacing
    question_count: int = Field(default=5, ge=1, description="Questions generated from a resume")
    question_time_limit_s: float = Field(
        default=120.0,
        gt=0,
        description="Seconds the candidate has to answer each question",
    )
    session_time_limit_s: float | None = Field(
        default=None,
        description="Optional cap on the whole session in seconds",
    )

    # Speech output
    tts_enabled: bool = Field(default=True, description="Speak questions through the speech provider")
    artifacts_dir: str = Field(
        default="data/interviews",
        description="Directory where synthesized audio is written",
    )

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug logging (overrides log_level)",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
