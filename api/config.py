"""
Environment-aware configuration.
Values are read once, when this module is imported; create_app() validates
the security-critical ones before the app is allowed to start.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

MIN_SECRET_LENGTH = 32


class ConfigError(RuntimeError):
    """Raised when the configuration is unusable and the app must not start."""


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    DEBUG = False
    TESTING = False
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    API_PREFIX = os.getenv("API_PREFIX", "/api")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///db/sqlite.db")

    # jwt configurations; JWT_SECRET has no default on purpose
    JWT_SECRET = os.getenv("JWT_SECRET")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", "604800")))
    ROTATE_REFRESH_TOKENS = _env_bool("ROTATE_REFRESH_TOKENS")

    # login rate limiting (fixed window per client ip)
    RATE_LIMIT_WINDOW = timedelta(milliseconds=int(os.getenv("RATE_LIMIT_WINDOW_MS", "900000")))
    RATE_LIMIT_MAX_ATTEMPTS = int(os.getenv("RATE_LIMIT_MAX_ATTEMPTS", "5"))
    RATE_LIMIT_SWEEP_SECONDS = int(os.getenv("RATE_LIMIT_SWEEP_SECONDS", "300"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True


class ProductionConfig(BaseConfig):
    DEBUG = False


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    API_PREFIX = "/api"
    CORS_ORIGINS = ["*"]
    JWT_SECRET = "test-secret-key-for-testing-only-0123456789"
    ROTATE_REFRESH_TOKENS = False
    RATE_LIMIT_WINDOW = timedelta(minutes=15)
    RATE_LIMIT_MAX_ATTEMPTS = 5
    # the sweeper thread is not started in tests; they call sweep() directly
    RATE_LIMIT_SWEEP_SECONDS = 0


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/prod/test).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def validate_config(config) -> None:
    """Refuse to run with a missing or weak signing secret."""
    secret = config.get("JWT_SECRET")
    if not secret:
        raise ConfigError("JWT_SECRET is not set")
    if len(secret) < MIN_SECRET_LENGTH:
        raise ConfigError(f"JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters long")
    if config.get("RATE_LIMIT_MAX_ATTEMPTS", 0) < 1:
        raise ConfigError("RATE_LIMIT_MAX_ATTEMPTS must be a positive integer")
