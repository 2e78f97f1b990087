"""
Configuration settings for fairquote.

Uses pydantic-settings for environment variable management with validation.
Supports multi-environment deployments (development, staging, production).
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection configuration."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    host: str = "localhost"
    port: int = 5432
    name: str = "fairquote"
    user: str = "postgres"
    password: SecretStr = SecretStr("postgres")
    pool_size: int = 20
    max_overflow: int = 10
    url: str | None = None

    @property
    def async_url(self) -> str:
        """Construct async database URL, honouring an explicit DB_URL."""
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:"
            f"{self.password.get_secret_value()}@"
            f"{self.host}:{self.port}/{self.name}"
        )


class AISettings(BaseSettings):
    """AI price-assessment provider configuration."""

    model_config = SettingsConfigDict(env_prefix="AI_")

    api_key: SecretStr | None = None
    model: str = "claude-3-5-haiku-20241022"
    base_url: str = "https://api.anthropic.com"
    timeout_seconds: float = 30.0
    max_tokens: int = 1024
    temperature: float = 0.2

    @property
    def configured(self) -> bool:
        """Whether a credential is present."""
        return bool(self.api_key and self.api_key.get_secret_value())


class PricingSettings(BaseSettings):
    """Price-fairness engine settings."""

    model_config = SettingsConfigDict(env_prefix="PRICING_")

    default_currency: str = "USD"
    default_region: str = "GLOBAL"
    min_crowd_quotes: int = 5
    heuristic_tolerance: float = 0.2
    learn_from_comparisons: bool = True
    catalog_backend: Literal["sql", "memory"] = "sql"
    recent_quotes_limit: int = 20


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "fairquote"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8081"]

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Sub-configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ai: AISettings = Field(default_factory=AISettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
