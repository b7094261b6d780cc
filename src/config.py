# config.py
# Flask application configuration

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Flask configuration class."""

    # Secret key for session security
    _secret_key = os.environ.get("FLASK_SECRET_KEY")
    if not _secret_key:
        warnings.warn(
            "FLASK_SECRET_KEY not set. Using default key which is insecure for production!",
            UserWarning,
            stacklevel=2
        )
        _secret_key = "change-me-in-production"
    SECRET_KEY = _secret_key

    # Root directory for persisted comment snapshots
    ALTERNATIVE_PATH = os.environ.get("HOME", ".") + "/data"

    TALK_DATA_ROOT = Path(os.environ.get("TALK_DATA_ROOT") or ALTERNATIVE_PATH).resolve()

    # Maximum content length (5MB)
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", 5 * 1024 * 1024))

    # Maximum title length
    MAX_TITLE_LENGTH = 255

    # MediaWiki API endpoint and server (used for diff links)
    TALK_API_URL = os.environ.get("TALK_API_URL", "https://en.wikipedia.org/w/api.php")
    TALK_SERVER = os.environ.get("TALK_SERVER", "https://en.wikipedia.org")

    # Convention preset ("mw", "meta", "ja") and optional JSON overrides
    TALK_CONVENTIONS = os.environ.get("TALK_CONVENTIONS", "mw")
    TALK_CONVENTIONS_FILE = os.environ.get("TALK_CONVENTIONS_FILE") or None

    # Timeout for wiki API requests, in seconds
    TALK_REQUEST_TIMEOUT = int(os.environ.get("TALK_REQUEST_TIMEOUT", 10))

    # Debug mode
    DEBUG = os.environ.get("FLASK_DEBUG", "0") == "1"

    # WTF CSRF protection
    WTF_CSRF_ENABLED = True

    # Session cookie settings
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 30 * 24 * 60 * 60  # 30 days


class DevelopmentConfig(Config):
    """Development configuration with debug enabled."""

    DEBUG = True


class TestingConfig(Config):
    """Testing configuration: CSRF and rate limits off, no network defaults."""

    TESTING = True
    DEBUG = True
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    TALK_API_URL = "https://test.invalid/w/api.php"
    TALK_SERVER = "https://test.invalid"


class ProductionConfig(Config):
    """Production configuration with secure cookies."""

    DEBUG = False
    SESSION_COOKIE_SECURE = True
