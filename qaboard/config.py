"""
Configuration management for the board service and client
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Client side
    api_url: str = Field(
        default="http://localhost:5000/api", description="Base URL of the board API"
    )
    stream_retry: float = Field(
        default=3.0, description="Push channel reconnect delay in seconds"
    )
    selection_file: str = Field(
        default=".qaboard/selection.json",
        description="File remembering the last class/lecture per role",
    )

    # Redis configuration
    redis_url: str = Field(default="redis://localhost:6379", description="Redis connection URL")

    # Security
    secret_key: str = Field(
        default="dev-secret-key-change-in-production",
        description="Secret key for signing bearer tokens",
    )
    token_max_age: int | None = Field(
        default=None, description="Token max age in seconds (None = no limit)"
    )

    # Validation
    max_question_length: int = Field(
        default=1000, description="Maximum student question length"
    )


# Global settings instance
settings = Settings()
