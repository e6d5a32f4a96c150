"""
Configuration for Workshop Tracker.

All settings can be overridden from the environment or a .env file.
The order store URL is required in production; development defaults to
a store running on localhost.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    JSON_SORT_KEYS = False

    # ==========================================================================
    # Order store (persistence collaborator)
    # ==========================================================================
    PERSISTENCE_API_URL = os.environ.get("PERSISTENCE_API_URL", "http://localhost:5000")
    PERSISTENCE_TIMEOUT_SECONDS = float(os.environ.get("PERSISTENCE_TIMEOUT_SECONDS", "10"))
    # Retries after the first attempt, for transient failures only
    PERSISTENCE_MAX_RETRIES = int(os.environ.get("PERSISTENCE_MAX_RETRIES", "3"))

    # Seconds between background refreshes of orders and items
    SNAPSHOT_REFRESH_SECONDS = float(os.environ.get("SNAPSHOT_REFRESH_SECONDS", "60"))
    START_BACKGROUND_REFRESH = os.environ.get("START_BACKGROUND_REFRESH", "1") == "1"

    # ==========================================================================
    # Workshop rules
    # ==========================================================================
    # Days a built instrument must dry before the DRY stage auto-completes
    DRYING_PERIOD_DAYS = int(os.environ.get("DRYING_PERIOD_DAYS", "5"))

    # Worksheet only shows orders whose number falls in this range
    MIN_ORDER_NUMBER = int(os.environ.get("MIN_ORDER_NUMBER", "1500"))
    MAX_ORDER_NUMBER = int(os.environ.get("MAX_ORDER_NUMBER", "99999"))

    # ==========================================================================
    # Local files
    # ==========================================================================
    # JSON object of serial number -> {type, tuning, frequency?, color?, notes?}
    # merged over the built-in catalogue. Empty = built-in catalogue only.
    SERIAL_DATABASE_PATH = os.environ.get("SERIAL_DATABASE_PATH", "")

    # Non-working periods and time window, saved on every change
    PREFERENCES_PATH = os.environ.get(
        "PREFERENCES_PATH", str(BASE_DIR / "data" / "preferences.json")
    )


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    START_BACKGROUND_REFRESH = False
    PERSISTENCE_MAX_RETRIES = 0
