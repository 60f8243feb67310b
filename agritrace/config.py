"""
AgriTrace Configuration
"""

import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    """Base configuration."""

    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")

    # Database
    DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///agritrace.db")
    SQL_ECHO = _env_bool("SQL_ECHO")

    # Traceback
    TRACE_DEFAULT_MAX_DEPTH = int(os.environ.get("TRACE_DEFAULT_MAX_DEPTH", 10))
    TRACE_MAX_DEPTH_LIMIT = int(os.environ.get("TRACE_MAX_DEPTH_LIMIT", 50))
    TRACE_TIME_BUDGET_SECONDS = float(os.environ.get("TRACE_TIME_BUDGET_SECONDS", 5.0))

    # Mass balance
    MASS_BALANCE_DEFAULT_TOLERANCE = float(
        os.environ.get("MASS_BALANCE_DEFAULT_TOLERANCE", 10.0)
    )

    # Audit chain
    AUDIT_GRACE_SECONDS = int(os.environ.get("AUDIT_GRACE_SECONDS", 5))
    AUDIT_VERIFY_ON_STARTUP = _env_bool("AUDIT_VERIFY_ON_STARTUP")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    TESTING = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False
    TESTING = False
    AUDIT_VERIFY_ON_STARTUP = _env_bool("AUDIT_VERIFY_ON_STARTUP", "true")


class TestingConfig(Config):
    """Testing configuration."""

    DEBUG = True
    TESTING = True
    DATABASE_URL = "sqlite:///:memory:"
    AUDIT_VERIFY_ON_STARTUP = False


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


def get_config(name=None):
    """Get configuration based on environment."""
    env = name or os.environ.get("AGRITRACE_ENV", "development")
    return config.get(env, config["default"])
