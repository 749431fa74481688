"""
Configuration module for Wastebin.
Loads environment variables and provides config objects.
"""
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import URL

from wastebin.errors import ConfigError

# Load environment variables from .env file
load_dotenv()

ENV_PREFIX = "WASTEBIN_"

DEFAULT_MAX_PASTE_SIZE = 10 * 1024 * 1024  # 10 MiB
MAX_ALLOWED_PASTE_SIZE = 100 * 1024 * 1024
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "WARNING", "ERROR", "CRITICAL")


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        env = os.environ if environ is None else environ
        self._errors: list[str] = []

        def get(name: str, default: str) -> str:
            return env.get(ENV_PREFIX + name, default)

        def get_int(name: str, default: int) -> int:
            raw = get(name, str(default))
            try:
                return int(raw)
            except ValueError:
                self._errors.append(f"{name} must be an integer, got {raw!r}")
                return default

        # Database
        self.LOCAL_DB: bool = _as_bool(get("LOCAL_DB", "false"))
        self.DB_PATH: str = get("DB_PATH", "dev.db")
        self.DB_HOST: str = get("DB_HOST", "localhost")
        self.DB_PORT: int = get_int("DB_PORT", 5432)
        self.DB_USER: str = get("DB_USER", "wastebin")
        self.DB_PASSWORD: str = get("DB_PASSWORD", "")
        self.DB_NAME: str = get("DB_NAME", "wastebin")
        self.DB_SSLMODE: str = get("DB_SSLMODE", "prefer")
        self.DB_MAX_IDLE_CONNS: int = get_int("DB_MAX_IDLE_CONNS", 5)
        self.DB_MAX_OPEN_CONNS: int = get_int("DB_MAX_OPEN_CONNS", 25)
        self.DB_CONNECT_RETRIES: int = get_int("DB_CONNECT_RETRIES", 3)

        # Pastes
        self.MAX_PASTE_SIZE: int = get_int("MAX_PASTE_SIZE", DEFAULT_MAX_PASTE_SIZE)

        # Web application
        self.APP_DOMAIN: str = get("APP_DOMAIN", "http://localhost:3000")
        self.WEBAPP_PORT: int = get_int("WEBAPP_PORT", 3000)
        self.LOG_LEVEL: str = get("LOG_LEVEL", "INFO").upper()
        self.DEBUG: bool = _as_bool(get("DEBUG", "false"))
        self.TEST_MODE: bool = _as_bool(get("TEST_MODE", "0"))

    def database_url(self) -> URL:
        """Build the SQLAlchemy URL for the configured backing store."""
        if self.LOCAL_DB:
            return URL.create("sqlite+pysqlite", database=self.DB_PATH)
        return URL.create(
            "postgresql+psycopg2",
            username=self.DB_USER,
            password=self.DB_PASSWORD,
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.DB_NAME,
            query={"sslmode": self.DB_SSLMODE},
        )

    def validate(self) -> None:
        """
        Check the settings for consistency.

        Raises:
            ConfigError: listing every problem found
        """
        errs = list(self._errors)

        if not 1 <= self.WEBAPP_PORT <= 65535:
            errs.append("webapp port must be a valid port number (1-65535)")

        if not self.LOCAL_DB:
            if not self.DB_HOST:
                errs.append("database host is required when not using local DB")
            if not self.DB_USER:
                errs.append("database user is required when not using local DB")
            if not self.DB_PASSWORD:
                errs.append("database password is required when not using local DB")
            if not self.DB_NAME:
                errs.append("database name is required when not using local DB")
            if not 1 <= self.DB_PORT <= 65535:
                errs.append("database port must be between 1 and 65535")
        elif not self.DB_PATH:
            errs.append("database path is required when using local DB")

        if self.DB_MAX_IDLE_CONNS < 0:
            errs.append("database max idle connections cannot be negative")
        if self.DB_MAX_OPEN_CONNS < 0:
            errs.append("database max open connections cannot be negative")
        if self.DB_MAX_OPEN_CONNS > 0 and self.DB_MAX_IDLE_CONNS > self.DB_MAX_OPEN_CONNS:
            errs.append("database max idle connections cannot exceed max open connections")
        if self.DB_CONNECT_RETRIES < 1:
            errs.append("database connect retries must be at least 1")

        if self.LOG_LEVEL not in VALID_LOG_LEVELS:
            errs.append(f"log level must be one of: {', '.join(VALID_LOG_LEVELS)}")

        if self.MAX_PASTE_SIZE < 1:
            errs.append("max paste size must be positive")
        if self.MAX_PASTE_SIZE > MAX_ALLOWED_PASTE_SIZE:
            errs.append("max paste size cannot exceed 100MB")

        if errs:
            raise ConfigError("configuration validation errors: " + "; ".join(errs))


settings = Settings()
