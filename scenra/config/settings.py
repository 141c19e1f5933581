"""
Configuration management for Scenra

Loads environment variables and provides application settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    app_name: str = "Scenra"
    port: int = 3000
    log_level: str = "INFO"

    # CORS Configuration
    # Default "*" allows all origins (suitable for development)
    # For production, set to comma-separated list:
    #   CORS_ALLOWED_ORIGINS=https://app.scenra.io,https://scenra.io
    cors_allowed_origins: str = "*"

    # =========================================================================
    # OpenAI Configuration
    # The roundtable personas and synthesis all talk to the chat completions API
    # =========================================================================
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None  # e.g., an OpenAI-compatible gateway
    llm_timeout_seconds: float = 60.0

    # =========================================================================
    # Agent Model Configuration
    # =========================================================================
    # Model selection lives in scenra/config/models.yaml and is resolved by
    # the LLMRouter service (scenra/services/llm_router.py).
    #
    # A/B Testing via environment variables:
    #   TEST_ROUNDTABLE_MODEL=gpt-4.1-mini uvicorn scenra.main:app
    #   TEST_SYNTHESIS_MODEL=gpt-4o uvicorn scenra.main:app
    models_config_path: Optional[str] = None

    # =========================================================================
    # Series data
    # Optional YAML/JSON seed file for the in-memory series repository
    # =========================================================================
    seed_path: Optional[str] = None

    # Debug Configuration
    debug_agent_io: bool = False  # Log persona inputs/outputs
    debug_api_calls: bool = False  # Log LLM API call details
    debug_log_dir: str = "logs/debug"  # Directory for debug logs
    debug_log_format: str = "json"  # "json" or "text"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once.
    """
    return Settings()
