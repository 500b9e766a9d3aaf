"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    openai_api_key: str
    openai_model: str = "gpt-4o"
    openai_vision_model: str = "gpt-4o"
    openai_max_tokens: int = 1000
    openai_temperature: float = 0.3
    ai_timeout_seconds: float = 30.0
    ai_max_retries: int = 2
    ai_backoff_base_seconds: float = 1.0
    ai_backoff_max_seconds: float = 8.0
    confidence_threshold: float = 0.7
    request_timeout_seconds: float = 60.0
    packaging_two_step_enabled: bool = True
    packaging_min_text_chars: int = 10
    off_base_url: str = "https://world.openfoodfacts.org"
    off_user_agent: str = "MealInference/1.0"
    off_timeout_seconds: float = 6.0
    # Failures are counted back to back with no time window; any success resets
    # the count, so intermittent errors never open the breaker above 1.
    breaker_failure_threshold: int = 1
    breaker_recovery_seconds: float = 10.0
    supabase_url: str
    supabase_service_key: str
    image_store_base_url: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
