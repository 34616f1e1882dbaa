"""
Environment-aware configuration.
Values come from the process environment (and .env via python-dotenv).
Token lifetimes, cookie policy, mail/SMS delivery and the job queue are all set here.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present


def _seconds(name: str, default: int) -> timedelta:
    return timedelta(seconds=int(os.getenv(name, str(default))))


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # JWT access tokens
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "account-api")
    ACCESS_TOKEN_EXPIRES = _seconds("ACCESS_TOKEN_EXPIRES_SECONDS", 24 * 3600)

    # Opaque tokens
    REFRESH_TOKEN_EXPIRES = _seconds("REFRESH_TOKEN_EXPIRES_SECONDS", 7 * 24 * 3600)
    PASSWORD_RESET_TOKEN_EXPIRES = _seconds("PASSWORD_RESET_TOKEN_EXPIRES_SECONDS", 3600)
    PHONE_CODE_EXPIRES = _seconds("PHONE_CODE_EXPIRES_SECONDS", 600)
    PHONE_CODE_LENGTH = int(os.getenv("PHONE_CODE_LENGTH", "6"))

    # Auth cookies (web clients only); Secure and Domain apply in production
    COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None

    ALLOWED_ROLES = os.getenv("ALLOWED_ROLES", "admin,user").split(",")
    DEFAULT_ROLE = os.getenv("DEFAULT_ROLE", "user")
    MIN_PASSWORD_LENGTH = int(os.getenv("MIN_PASSWORD_LENGTH", "6"))

    # Links placed in outgoing mail
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8000")

    # Mail delivery: "smtp" or "console"
    MAIL_BACKEND = os.getenv("MAIL_BACKEND", "console")
    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_USE_TLS = _flag("MAIL_USE_TLS", "true")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "no-reply@localhost")

    # SMS delivery: "console" only; codes are verified locally
    SMS_BACKEND = os.getenv("SMS_BACKEND", "console")

    CELERY = {
        "broker_url": os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
        "result_backend": os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
        "task_ignore_result": True,
        "task_always_eager": _flag("CELERY_TASK_ALWAYS_EAGER"),
        "task_serializer": "json",
        "accept_content": ["json"],
        "timezone": "UTC",
        "enable_utc": True,
    }


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "test"
    JWT_SECRET = "test-secret"
    MAIL_BACKEND = "console"
    SMS_BACKEND = "console"
    CELERY = dict(
        BaseConfig.CELERY,
        broker_url="memory://",
        result_backend="cache+memory://",
        task_always_eager=True,
        task_eager_propagates=True,
    )


class ProductionConfig(BaseConfig):
    DEBUG = False
    APP_ENV = "production"


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def is_production(config) -> bool:
    return config.get("APP_ENV", "dev").lower() in ("prod", "production")
