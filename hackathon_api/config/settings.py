"""
hackathon_api/config/settings.py
Environment-driven configuration

All settings are read from environment variables (a .env file is loaded first
by python-dotenv). Import the `settings` singleton rather than calling os.getenv
throughout the codebase.
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
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def get_list_env(key: str) -> List[str]:
    """Comma-separated list, empty entries dropped."""
    return [item.strip() for item in os.getenv(key, "").split(",") if item.strip()]


class Settings:
    """
    Application settings.

    To add a new setting:
    1. Add it here as a class attribute
    2. Load it from an environment variable
    3. Read it through `settings.<NAME>`
    """

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Relational store
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./hackathon.db")
    SQL_ECHO: bool = get_bool_env("SQL_ECHO", False)

    # Document store
    MONGODB_URL: str = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
    MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "hackathon")

    # Auth
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = get_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)
    BCRYPT_ROUNDS: int = get_int_env("BCRYPT_ROUNDS", 12)

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = get_bool_env("RATE_LIMIT_ENABLED", True)
    LOGIN_RATE_LIMIT: str = os.getenv("LOGIN_RATE_LIMIT", "10/minute")

    # CORS
    ALLOWED_ORIGINS: List[str] = get_list_env("ALLOWED_ORIGINS")

    # Pagination
    DEFAULT_PAGE_SIZE: int = get_int_env("DEFAULT_PAGE_SIZE", 10)
    MAX_PAGE_SIZE: int = get_int_env("MAX_PAGE_SIZE", 100)

    # Events
    DEFAULT_MAX_TEAM_SIZE: int = get_int_env("DEFAULT_MAX_TEAM_SIZE", 4)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


# Singleton instance for easy importing
settings = Settings()
