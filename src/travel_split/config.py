"""Configuration management for TravelSplit."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # exchangerate.host API (optional: without a key every rate is 1)
    exchange_rate_api_key: str | None = None
    exchange_rate_base_url: str = "https://api.exchangerate.host"
    http_timeout: float = 30.0

    # Settlement settings
    default_currency: str = "JPY"  # Target currency when none is given

    # Database path
    database_path: Path = Path.home() / ".travel_split" / "travel_split.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your environment variables or "
            f".env file. See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
