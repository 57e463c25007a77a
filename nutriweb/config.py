"""Configuration objects for the nutriweb frontend."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Type

basedir = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    BACKEND_API_URL: str = os.getenv("BACKEND_API_URL", "http://localhost:4000/api/")
    BACKEND_TIMEOUT: float = float(os.getenv("BACKEND_TIMEOUT", "15"))
    SITE_URL: str = os.getenv("SITE_URL", "https://anubhanutrition.in")
    DOCTOR_NOTES_AUTOSAVE_DELAY: float = float(os.getenv("DOCTOR_NOTES_AUTOSAVE_DELAY", "2"))
    OTP_RESEND_COOLDOWN: int = int(os.getenv("OTP_RESEND_COOLDOWN", "60"))
    LOGOUT_TRANSITION_DELAY: float = float(os.getenv("LOGOUT_TRANSITION_DELAY", "0.3"))
    MAX_TESTIMONIAL_IMAGE_BYTES: int = 10 * 1024 * 1024
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def as_dict(cls) -> Dict[str, Any]:
        """Expose configuration values for debugging and introspection."""

        return {key: getattr(cls, key) for key in dir(cls) if key.isupper()}


class DevelopmentConfig(Config):
    """Configuration suitable for local development."""

    _db_path = basedir / "client_state.db"
    SQLALCHEMY_DATABASE_URI = os.getenv("DEV_DATABASE_URL", f"sqlite:///{_db_path}")
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    """Configuration tailored for production deployments."""

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///nutriweb.db")
    SESSION_COOKIE_SECURE = True
    DEBUG = False


class TestingConfig(Config):
    """Configuration used by the test-suite."""

    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    BACKEND_API_URL = "http://backend.test/api/"
    LOGOUT_TRANSITION_DELAY = 0.0


CONFIG_MAP: Dict[str, Type[Config]] = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config(name: str | None) -> Type[Config]:
    """Retrieve the configuration class matching the supplied name."""

    if not name:
        return DevelopmentConfig
    return CONFIG_MAP.get(name.lower(), DevelopmentConfig)
