"""Configuration objects for the salon backend.

Values come from the environment (optionally a ``.env`` file). ``create_app``
picks one of the classes below based on ``FLASK_ENV`` unless an explicit
config object is passed in.
"""
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _database_url() -> str:
    url = os.environ.get("DATABASE_URL", "sqlite:///salon.db")
    # Heroku/Railway style URLs still use the deprecated scheme name
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


class Config:
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    TOKEN_SALT = os.environ.get("TOKEN_SALT", "auth-token")

    CLIENT_URL = os.environ.get("CLIENT_URL", "http://localhost:3000")
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get("CORS_ORIGINS", CLIENT_URL).split(",")
        if origin.strip()
    ]

    RESEND_API_KEY = os.environ.get("RESEND_API_KEY")
    RESEND_FROM_EMAIL = os.environ.get("RESEND_FROM_EMAIL", "onboarding@resend.dev")
    EMAIL_ENABLED = True

    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID")
    GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    PASSWORD_RESET_TTL_SECONDS = int(os.environ.get("PASSWORD_RESET_TTL_SECONDS", 3600))

    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SECRET_KEY = "test-secret"
    EMAIL_ENABLED = False
    RESEND_API_KEY = None
    GOOGLE_CLIENT_ID = None
    CORS_ORIGINS = ["*"]


class ProductionConfig(Config):
    pass


CONFIG_BY_NAME = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def config_for_environment(name: str | None = None) -> type[Config]:
    """Return the config class for ``name`` (defaults to ``FLASK_ENV``)."""
    name = (name or os.environ.get("FLASK_ENV") or "production").lower()
    return CONFIG_BY_NAME.get(name, ProductionConfig)
