"""Configuration management for SlabNest."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SLABNEST_",
        extra="ignore",
    )

    # Nesting
    optimize_timeout_seconds: Optional[float] = Field(
        default=30.0,
        description="Abort a batch optimization after this many seconds (unset disables)",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="text", description="Log output format: 'text' or 'json'")

    # HTTP adapter
    api_host: str = Field(default="127.0.0.1", description="API server host")
    api_port: int = Field(default=9890, description="API server port")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma separated list of allowed CORS origins",
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure(settings: Optional[Settings]) -> None:
    """Override global settings (None resets to environment defaults)."""
    global _settings
    _settings = settings
