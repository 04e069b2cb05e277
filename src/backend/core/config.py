"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables or an optional .env file.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "PlanningPoker"
    APP_ENV: str = "development"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False  # JSON lines instead of the console renderer

    # Document store selection: "memory" (process-local) or "cosmos"
    STORE_BACKEND: str = "memory"

    # Azure Cosmos DB
    # Either AZURE_COSMOS_ENDPOINT (RBAC) or AZURE_COSMOS_CONNECTION_STRING (emulator)
    AZURE_COSMOS_ENDPOINT: str | None = None
    AZURE_COSMOS_CONNECTION_STRING: str | None = None
    AZURE_COSMOS_DATABASE: str = "planning-poker"
    AZURE_COSMOS_DISABLE_SSL: bool = False

    # How often Cosmos-backed subscriptions re-query for changes
    SUBSCRIPTION_POLL_INTERVAL_MS: int = 1000

    # Rate limiting (write-cost controls)
    EMOJI_THROW_COOLDOWN_MS: int = 500  # Minimum gap between throws per participant
    MAX_EMOJIS_PER_MINUTE: int = 10
    VOTE_UPDATE_DEBOUNCE_MS: int = 500  # Wait before sending a vote update
    REACTION_WINDOW_SIZE: int = 10  # Most recent reactions delivered to listeners

    # Client-local identity (current game / participant tokens)
    IDENTITY_FILE: str = str(Path.home() / ".planning-poker" / "identity.json")

    # Shareable links
    GAME_URL_BASE: str = "http://localhost:3000"

    @field_validator("STORE_BACKEND")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Only the in-memory and Cosmos adapters exist."""
        backend = v.strip().lower()
        if backend not in ("memory", "cosmos"):
            raise ValueError(f"STORE_BACKEND must be 'memory' or 'cosmos', got {v!r}")
        return backend

    @field_validator(
        "SUBSCRIPTION_POLL_INTERVAL_MS",
        "EMOJI_THROW_COOLDOWN_MS",
        "VOTE_UPDATE_DEBOUNCE_MS",
    )
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("timing settings must not be negative")
        return v

    @field_validator("MAX_EMOJIS_PER_MINUTE", "REACTION_WINDOW_SIZE")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("limits must be at least 1")
        return v

    @property
    def is_cosmos_configured(self) -> bool:
        """Check if Cosmos DB connection details are present."""
        return bool(self.AZURE_COSMOS_ENDPOINT or self.AZURE_COSMOS_CONNECTION_STRING)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
