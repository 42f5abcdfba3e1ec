"""
Application configuration loaded from environment variables.

All configuration is validated at startup to fail fast on misconfiguration.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with validation.
    
    All settings are loaded from environment variables with the same name.
    Use .env file for local development.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )
    
    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./greendocs.db",
        description="SQLAlchemy async connection string (asyncpg or aiosqlite driver)"
    )
    
    # Inference
    openai_api_key: SecretStr = Field(
        description="API key for the OpenAI chat completions endpoint"
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override for the OpenAI API base URL (proxies, compatible servers)"
    )
    extraction_model: str = Field(
        default="gpt-4o",
        description="Multimodal model used for field extraction"
    )
    analysis_model: str = Field(
        default="gpt-4o-mini",
        description="Text model used for compliance error analysis"
    )
    max_completion_tokens: int = Field(
        default=2048,
        gt=0,
        description="Upper bound on tokens generated per inference call"
    )
    inference_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for a single inference call"
    )
    file_fetch_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for fetching remote document files"
    )
    
    # Storage
    storage_path: Path = Field(
        default=Path("./storage"),
        description="Local path for document storage"
    )
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Largest accepted upload"
    )
    
    # Review
    default_reviewer: str = Field(
        default="System",
        description="Reviewer name recorded when a decision carries none"
    )
    
    # Server
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root logging level"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with detailed error messages"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.
    
    Settings are loaded once at startup and cached for subsequent calls.
    This ensures consistent configuration across the application lifecycle.
    """
    return Settings()
