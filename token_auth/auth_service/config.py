"""
Configuration management for the auth service
"""
import logging
import re
from datetime import timedelta
from functools import lru_cache
from typing import List, Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value) -> timedelta:
    """
    Parse a token lifetime.

    Accepts a timedelta, an integer number of seconds, or a string such as
    "900", "60s", "15m", "12h" or "7d".
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, int):
        return timedelta(seconds=value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration '{value}'. Use seconds or a number with s/m/h/d suffix")
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _DURATION_UNITS[unit])


class Settings(BaseSettings):
    """Auth service configuration loaded from environment variables"""

    # Signing keys, one per token role
    JWT_SECRET: SecretStr
    JWT_REFRESH_SECRET: SecretStr
    JWT_RESET_SECRET: SecretStr

    # Token lifetimes, one per token role
    JWT_EXPIRES_IN: timedelta = timedelta(minutes=15)
    JWT_REFRESH_EXPIRES_IN: timedelta = timedelta(days=7)
    JWT_RESET_EXPIRES_IN: timedelta = timedelta(minutes=15)
    JWT_ALGORITHM: str = "HS256"

    # Server Configuration
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./auth.db"

    # Mail Configuration
    MAIL_TRANSPORT: Literal["log", "smtp"] = "log"
    MAIL_FROM: str = "no-reply@localhost"
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: SecretStr = SecretStr("")
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT: int = 10

    # Link embedded in password recovery emails
    PASSWORD_RESET_URL: str = "http://localhost:3000/reset-password"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    @field_validator("JWT_SECRET", "JWT_REFRESH_SECRET", "JWT_RESET_SECRET")
    @classmethod
    def _require_secret(cls, value: SecretStr, info) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return value

    @field_validator("JWT_EXPIRES_IN", "JWT_REFRESH_EXPIRES_IN", "JWT_RESET_EXPIRES_IN", mode="before")
    @classmethod
    def _parse_ttl(cls, value):
        ttl = parse_duration(value)
        if ttl <= timedelta(0):
            raise ValueError("Token lifetime must be positive")
        return ttl

    @model_validator(mode="after")
    def _warn_on_shared_secrets(self):
        secrets = {
            self.JWT_SECRET.get_secret_value(),
            self.JWT_REFRESH_SECRET.get_secret_value(),
            self.JWT_RESET_SECRET.get_secret_value(),
        }
        if len(secrets) < 3:
            logger.warning("JWT signing secrets are shared between token roles; tokens of one role will verify as another")
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Build the settings once per process.

    Raises pydantic.ValidationError when a signing secret is missing, so the
    service refuses to start without its keys. Tests can reset the cache via
    get_settings.cache_clear().
    """
    return Settings()
