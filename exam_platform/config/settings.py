"""
Application Settings

Centralized configuration for the exam platform.
All values are loaded from environment variables (a local .env file is
honoured through python-dotenv).
"""
import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable, falling back on garbage."""
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    """
    Runtime settings for the application.

    To add a new setting:
    1. Add it here as a class property
    2. Load it from environment variable
    3. Pass it explicitly into the service that needs it
    """

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./exam_platform.db")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    ALLOWED_ORIGINS: List[str] = [
        origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "").split(",") if origin.strip()
    ]

    # Grading / paper validation
    PASS_THRESHOLD_PERCENT: int = get_int_env('PASS_THRESHOLD_PERCENT', 40)
    MIN_QUESTIONS: int = get_int_env('MIN_QUESTIONS', 1)
    MAX_QUESTIONS: int = get_int_env('MAX_QUESTIONS', 50)

    # Periodic sweep closing attempts nobody revisits (lazy expiry covers the rest)
    EXPIRY_SWEEP_ENABLED: bool = get_bool_env('EXPIRY_SWEEP_ENABLED', False)
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = get_int_env('EXPIRY_SWEEP_INTERVAL_SECONDS', 60)

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT == "development"

    @classmethod
    def as_dict(cls) -> dict:
        """Get all settings as a dictionary (safe for diagnostics output)."""
        return {
            key: value
            for key, value in cls.__dict__.items()
            if key.isupper() and not key.startswith('_')
        }


# Singleton instance for easy importing
settings = Settings()
