"""Configuration loading for the billing engine.

Loads settings from .env file and environment variables with sensible defaults.
Validates values and provides clear error messages.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

from rentledger.services.logging import LOG_LEVEL_MAP


@dataclass
class AppConfig:
    """Runtime configuration for billing services."""

    database_url: str = "sqlite:///./rentledger.db"
    """SQLAlchemy database URL (default: local SQLite)"""

    log_file: str = "logs/rentledger.log"
    """Path to log file (default: logs/rentledger.log)"""

    log_level: str = "INFO"
    """Logging level name"""

    balance_tolerance: Decimal = Decimal("1")
    """Allowed drift between stored balances and the reconstructed ledger"""


def load_config() -> AppConfig:
    """
    Load configuration from .env file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (DATABASE_URL, LOG_FILE, LOG_LEVEL, BALANCE_TOLERANCE)
    2. .env file in project root
    3. Default values

    Returns:
        AppConfig with all settings

    Raises:
        ValueError: If a configured value is invalid
    """
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    database_url = os.getenv("DATABASE_URL", "sqlite:///./rentledger.db")
    log_file = os.getenv("LOG_FILE", "logs/rentledger.log")
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    tolerance_raw = os.getenv("BALANCE_TOLERANCE", "1")

    if not database_url:
        raise ValueError(
            "DATABASE_URL is empty. Set DATABASE_URL environment variable or in .env file"
        )

    if log_level not in LOG_LEVEL_MAP:
        raise ValueError(
            f"Invalid LOG_LEVEL: {log_level}. Expected one of: {', '.join(LOG_LEVEL_MAP)}"
        )

    try:
        balance_tolerance = Decimal(tolerance_raw)
    except InvalidOperation as e:
        raise ValueError(
            f"BALANCE_TOLERANCE is not a number: {tolerance_raw!r}"
        ) from e

    if balance_tolerance < 0:
        raise ValueError(f"BALANCE_TOLERANCE must not be negative: {tolerance_raw}")

    return AppConfig(
        database_url=database_url,
        log_file=log_file,
        log_level=log_level,
        balance_tolerance=balance_tolerance,
    )
