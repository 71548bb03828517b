"""Configuration management for GatheringSplit."""

from decimal import Decimal
from pathlib import Path

from pydantic import Field
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

    # Settlement settings
    settlement_epsilon: Decimal = Field(default=Decimal("0.01"), gt=0)

    # Display settings
    currency_symbol: str = "$"

    # Database path
    database_path: Path = Path.home() / ".gathering_split" / "gathering_split.db"

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
            f"Failed to load settings. Check your .env file and environment "
            f"variables (DATABASE_PATH, SETTLEMENT_EPSILON, CURRENCY_SYMBOL).\n"
            f"Error: {e}"
        ) from e
