"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./proptech.db"

    # OpenAI
    openai_api_key: str | None = None
    openai_model: str = "gpt-4"
    ai_timeout_seconds: float = 60.0
    # Substitute an "analysis unavailable" record when the model call fails
    ai_fallback_on_error: bool = True
    # Whether a substituted fallback record is billed like a real analysis
    charge_fallback_analyses: bool = False

    # Stripe
    stripe_secret_key: str | None = None
    payment_currency: str = "eur"
    payment_timeout_seconds: float = 20.0

    # Authentication
    jwt_secret: str = "fallback_secret"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 7 * 24 * 60

    # Credits
    starting_credits: int = 5
    analysis_cost: int = 1

    # Uploads
    upload_dir: Path = Path("./uploads")
    max_upload_bytes: int = 10 * 1024 * 1024

    # Rate limiting (per client, fixed window)
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 15 * 60

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Debug flags
    sql_debug: bool = False
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the backend directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()
