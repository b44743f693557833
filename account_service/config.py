# account_service/config.py
"""Environment-backed settings for the account service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .log import get_logger

logger = get_logger("config")

DEFAULT_DATABASE_URL = "sqlite:///./db/accounts.db"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


@dataclass(frozen=True)
class Settings:
    auth_secret_key: str
    database_url: str = DEFAULT_DATABASE_URL
    app_env: str = "development"

    # Token and reset-code lifetimes
    access_token_expire_seconds: int = 3600
    reset_code_expire_seconds: int = 600
    reset_code_attempts: int = 5
    bcrypt_rounds: int = 10

    # SendGrid & Twilio
    sendgrid_api_key: Optional[str] = None
    mail_from_email: Optional[str] = None
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    sms_country_code: str = "+86"

    cors_origins: List[str] = field(
        default_factory=lambda: DEFAULT_CORS_ORIGINS.split(",")
    )
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def email_configured(self) -> bool:
        return bool(self.sendgrid_api_key and self.mail_from_email)

    @property
    def sms_configured(self) -> bool:
        return all(
            [self.twilio_account_sid, self.twilio_auth_token, self.twilio_phone_number]
        )


def _optional(env: Mapping[str, Optional[str]], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None or str(value).strip() == "":
        return None
    return str(value).strip()


def _int(env: Mapping[str, Optional[str]], name: str, default: int) -> int:
    value = _optional(env, name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {value!r}")


def load_settings(env: Optional[Mapping[str, Optional[str]]] = None) -> Settings:
    """Build Settings from the process environment (after reading .env) or a mapping."""
    if env is None:
        load_dotenv()
        env = os.environ

    secret = _optional(env, "AUTH_SECRET_KEY")
    if not secret:
        raise RuntimeError(
            "AUTH_SECRET_KEY is not set. Please configure it in the environment."
        )

    database_url = _optional(env, "DATABASE_URL")
    if not database_url:
        database_url = DEFAULT_DATABASE_URL
        logger.warning("DATABASE_URL not set, using SQLite fallback database: %s", database_url)

    origins = _optional(env, "CORS_ORIGINS") or DEFAULT_CORS_ORIGINS

    settings = Settings(
        auth_secret_key=secret,
        database_url=database_url,
        app_env=_optional(env, "APP_ENV") or "development",
        access_token_expire_seconds=_int(env, "ACCESS_TOKEN_EXPIRE_SECONDS", 3600),
        reset_code_expire_seconds=_int(env, "RESET_CODE_EXPIRE_SECONDS", 600),
        reset_code_attempts=_int(env, "RESET_CODE_ATTEMPTS", 5),
        bcrypt_rounds=_int(env, "BCRYPT_ROUNDS", 10),
        sendgrid_api_key=_optional(env, "SENDGRID_API_KEY"),
        mail_from_email=_optional(env, "MAIL_FROM_EMAIL"),
        twilio_account_sid=_optional(env, "TWILIO_ACCOUNT_SID"),
        twilio_auth_token=_optional(env, "TWILIO_AUTH_TOKEN"),
        twilio_phone_number=_optional(env, "TWILIO_PHONE_NUMBER"),
        sms_country_code=_optional(env, "SMS_COUNTRY_CODE") or "+86",
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=(_optional(env, "LOG_LEVEL") or "INFO").upper(),
    )
    logger.info("Loaded settings for env=%s", settings.app_env)
    return settings
