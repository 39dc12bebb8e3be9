"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
request numbering and logging. It uses environment variables for sensitive information and defaults for development.
In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'marketplace.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection (clients send the token from /api/auth/me as X-CSRFToken)
    WTF_CSRF_ENABLED = os.environ.get("WTF_CSRF_ENABLED", "1") != "0"

    # Request numbers look like <PREFIX>-RFQ-0001
    RFQ_NUMBER_PREFIX = os.environ.get("RFQ_NUMBER_PREFIX", "SOMVI")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_JSON = os.environ.get("LOG_JSON") is not None

    APP_NAME = "Procurement Marketplace"


class TestConfig(Config):
    """Configuration used by the pytest suite."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    RFQ_NUMBER_PREFIX = "TEST"
    LOG_LEVEL = "WARNING"
