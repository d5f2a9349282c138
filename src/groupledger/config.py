"""Configuration management for groupledger."""

import re
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .money import MAX_AMOUNT_CENTS, MIN_AMOUNT_CENTS, Money
from .splitting import MAX_SPLITS

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Currency assumed for records that carry none
    default_currency: str = "USD"

    # Accepted range for a single ledger entry
    min_amount: Money = Money.from_cents(MIN_AMOUNT_CENTS)
    max_amount: Money = Money.from_cents(MAX_AMOUNT_CENTS)

    # Per-currency residual tolerated before a ledger is rejected as unbalanced
    balance_tolerance_cents: int = 0

    max_splits: int = MAX_SPLITS

    # Ledger snapshot used by the CLI when no path is given
    ledger_path: Path | None = None

    @field_validator("default_currency", mode="before")
    @classmethod
    def _check_currency(cls, value: str) -> str:
        code = str(value).strip().upper()
        if not _CURRENCY_CODE.match(code):
            raise ValueError("Invalid currency code (must be 3-letter ISO 4217)")
        return code

    @field_validator("balance_tolerance_cents")
    @classmethod
    def _check_tolerance(cls, value: int) -> int:
        if value < 0:
            raise ValueError("balance_tolerance_cents cannot be negative")
        return value


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your environment and .env file. "
            f"See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
