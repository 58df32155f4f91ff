"""
Application Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded from environment variables or .env file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MOCK_API_KEY = "mock"


class Settings(BaseSettings):
    """
    Application settings with environment variable binding.

    Required env vars (no defaults):
        POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_DB

    Optional env vars:
        POSTGRES_PORT (5432), LOG_LEVEL (INFO), GENERATION_LOG_LEVEL (LOG_LEVEL),
        OPENROUTER_API_KEY (unset), DAILY_GENERATION_LIMIT (50), PROMPT_MAX_CHARS (180)
    """

    PROJECT_NAME: str = "NoteCanvas"

    # Database
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_HOST: str
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str

    # Logging
    LOG_LEVEL: str = "INFO"
    GENERATION_LOG_LEVEL: str | None = None  # Pipeline stage tracing, defaults to LOG_LEVEL

    # Providers (OpenRouter serves both text completion and image generation)
    OPENROUTER_API_KEY: str | None = None
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    PROMPT_MODEL: str = "anthropic/claude-3.5-sonnet"
    IMAGE_MODEL: str = "google/gemini-2.5-flash-image"
    PROMPT_TIMEOUT: float = 30.0
    IMAGE_TIMEOUT: float = 60.0
    APP_REFERER: str = "https://notecanvas.local"
    APP_TITLE: str = "NoteCanvas"

    # Generation
    PROMPT_MAX_CHARS: int = Field(default=180, ge=20)
    DAILY_GENERATION_LIMIT: int = Field(default=50, gt=0)

    # Durable URLs for stored objects are built from this prefix
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
    )

    @property
    def DATABASE_URL(self) -> str:
        """Async PostgreSQL connection string using asyncpg driver."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def provider_api_key(self) -> str | None:
        """
        Bearer credential for the providers, or None when unusable.

        A missing key and the literal 'mock' both disable provider calls so
        local development never hits the network.
        """
        key = self.OPENROUTER_API_KEY
        if not key or key.strip().lower() == MOCK_API_KEY:
            return None
        return key.strip()


settings = Settings()  # type: ignore[call-arg]
