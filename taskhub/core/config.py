"""
Configuration for TaskHub.

Settings are read once at startup by load_settings() and passed explicitly
into the services that need them. Nothing in the core reads os.environ
after that point.
"""

from __future__ import annotations

import os
import re
from datetime import timedelta
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from ..utils.exceptions import ConfigError


_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration such as "900", "15m", "1h" or "7d".

    Bare numbers are seconds.
    """
    match = _DURATION_RE.match(str(value).lower())
    if not match:
        raise ConfigError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _UNIT_SECONDS[unit])


class Settings(BaseModel):
    """Process-wide configuration."""

    environment: str = "development"

    database_type: Literal["file", "mongodb"] = "file"
    data_dir: str = "db"
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "taskhub"

    access_token_secret: str
    refresh_token_secret: str
    access_token_ttl: timedelta = timedelta(hours=1)
    refresh_token_ttl: timedelta = timedelta(days=7)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    frontend_url: str = "http://localhost:3000"
    body_limit_bytes: int = 10 * 1024 * 1024
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max: int = 100

    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    admin_name: str = "Administrator"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment (and .env, when present).

    Raises ConfigError if either signing secret is missing or a value
    cannot be parsed.
    """
    load_dotenv(env_file)

    access_token_secret = (os.getenv("JWT_SECRET") or "").strip()
    refresh_token_secret = (os.getenv("JWT_REFRESH_SECRET") or "").strip()
    if not access_token_secret or not refresh_token_secret:
        raise ConfigError("Token signing secrets are not configured (JWT_SECRET, JWT_REFRESH_SECRET)")

    database_type = (os.getenv("DATABASE_TYPE") or "file").strip().lower()
    if database_type not in ("file", "mongodb"):
        raise ConfigError(f"Unknown DATABASE_TYPE: {database_type!r}")

    try:
        return Settings(
            environment=os.getenv("ENVIRONMENT", "development"),
            database_type=database_type,
            data_dir=os.getenv("DATA_DIR", "db"),
            mongo_uri=os.getenv("MONGO_URI", "mongodb://localhost:27017"),
            mongo_db_name=os.getenv("MONGO_DB_NAME", "taskhub"),
            access_token_secret=access_token_secret,
            refresh_token_secret=refresh_token_secret,
            access_token_ttl=parse_duration(os.getenv("JWT_EXPIRES_IN", "1h")),
            refresh_token_ttl=parse_duration(os.getenv("JWT_REFRESH_EXPIRES_IN", "7d")),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
            body_limit_bytes=int(os.getenv("BODY_LIMIT_BYTES", str(10 * 1024 * 1024))),
            rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900")),
            rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", "100")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
            log_file=os.getenv("LOG_FILE") or None,
            admin_email=os.getenv("ADMIN_EMAIL") or None,
            admin_password=os.getenv("ADMIN_PASSWORD") or None,
            admin_name=os.getenv("ADMIN_NAME", "Administrator"),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}")
