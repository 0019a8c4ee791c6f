"""Configuration management for the procurement marketplace."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./procurement.db"
    database_echo: bool = False
    seed_sample_data: bool = True

    # Azure OpenAI Configuration
    azure_openai_endpoint: Optional[str] = None
    azure_openai_api_key: Optional[str] = None
    azure_openai_deployment_name: str = "gpt-4o-mini"
    azure_openai_api_version: str = "2024-02-15-preview"
    generation_timeout_seconds: float = 20.0
    generation_temperature: float = 0.7

    # Quote policy
    quote_validity_days: int = 7
    default_lead_time_days: int = 7
    max_price_drift_percent: float = 25.0

    # Server Configuration
    cors_origins: List[str] = ["*"]
    port: int = 8000
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Global settings instance
settings = get_settings()
