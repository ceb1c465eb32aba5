from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Podcastinator settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "Podcastinator"
    DEBUG: bool = False
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # --- Media Volume ---
    MEDIA_VOLUME: str = "media_volume"

    # --- OpenAI-compatible model service ---
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_API_KEY: str = ""
    LLM_TIMEOUT: int = 180

    # --- Models ---
    OUTLINE_MODEL: str = "gpt-4o-mini"
    OUTLINE_VERIFY_MODEL: str = "gpt-4o-mini"
    SCRIPT_MODEL: str = "gpt-4.1-mini"
    SCRIPT_VERIFY_MODEL: str = "gpt-4.1-mini"
    TTS_MODEL: str = "tts-1"
    SCRIPT_LANGUAGE: str = "english"

    # --- Retry policy (every model-service call) ---
    RETRY_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_MS: float = 1000.0
    RETRY_MAX_DELAY_MS: float = 10000.0
    RETRY_JITTER: float = 0.25

    # --- Generate / verify / improve loops ---
    SECTION_MAX_ATTEMPTS: int = 3
    CROSS_SECTION_MAX_ATTEMPTS: int = 2
    OUTLINE_MAX_ATTEMPTS: int = 3
    WORDS_PER_MINUTE: int = 160
    CONTINUITY_EXCHANGES: int = 2
    PODCAST_DURATION: int = 30

    # --- Composite progress weights ---
    PROGRESS_SECTION_SHARE: float = 0.8
    PROGRESS_GENERATE_WEIGHT: float = 0.6
    PROGRESS_VERIFY_WEIGHT: float = 0.3
    PROGRESS_IMPROVE_WEIGHT: float = 0.1
    PROGRESS_REVIEW_SPLIT: float = 0.5  # review share of the post-section remainder

    # --- Audio ---
    HOST_VOICE: str = "alloy"
    GUEST_VOICE: str = "echo"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
