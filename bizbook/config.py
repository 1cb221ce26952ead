"""Configuration objects loaded by ``create_app``.

Values are read from environment variables when this module is imported,
so set them before the application is created. The default database is an
in-memory SQLite database: nothing survives a process restart unless
``DATABASE_URL`` points somewhere durable.
"""
from __future__ import annotations

import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def uses_memory_database(config) -> bool:
    uri = config.get("SQLALCHEMY_DATABASE_URI") or ""
    return uri in {"sqlite://", "sqlite:///:memory:"}


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite://")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens expire after seven days.
    TOKEN_MAX_AGE_SECONDS = int(os.getenv("TOKEN_MAX_AGE_SECONDS", str(7 * 24 * 60 * 60)))
    PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD", "scrypt")

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ]
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    REMINDER_WINDOW_MINUTES = int(os.getenv("REMINDER_WINDOW_MINUTES", "60"))
    AVAILABILITY_DAY_START = os.getenv("AVAILABILITY_DAY_START", "09:00")
    AVAILABILITY_DAY_END = os.getenv("AVAILABILITY_DAY_END", "17:00")

    MAIL_SERVER = os.getenv("MAIL_SERVER")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", "true")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "no-reply@bizbook.local")
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND")

    NOTIFICATION_MAX_ATTEMPTS = int(os.getenv("NOTIFICATION_MAX_ATTEMPTS", "5"))
    NOTIFICATION_RETRY_BASE_SECONDS = int(os.getenv("NOTIFICATION_RETRY_BASE_SECONDS", "60"))
    # Send lifecycle emails during the request that queued them; the dispatch
    # script only retries what failed here.
    NOTIFICATION_DISPATCH_INLINE = _env_bool("NOTIFICATION_DISPATCH_INLINE", "true")

    API_VERSION = "1.0.0"


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    # Cheap hashing keeps the suite fast; production uses scrypt.
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"
    MAIL_SUPPRESS_SEND = True
    LOG_LEVEL = "WARNING"
