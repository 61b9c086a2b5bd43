"""
Configuration for Moto Shop Web.

Printful credentials are read from the environment (or a .env file).
A missing key does not stop the app from starting - handlers that need
Printful answer 500 "not configured" instead, like the rest of the site's
serverless endpoints did.
"""

import os

from dotenv import load_dotenv

# Load .env early so environment variables are available for Config class
load_dotenv(override=True)


def _env_list(name: str) -> list:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 1 MB JSON bodies
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # ==========================================================================
    # Printful
    # ==========================================================================
    PRINTFUL_API_KEY = os.environ.get("PRINTFUL_API_KEY", "").strip()
    PRINTFUL_STORE_ID = os.environ.get("PRINTFUL_STORE_ID", "").strip()
    PRINTFUL_STORE_NAME = os.environ.get("PRINTFUL_STORE_NAME", "Moto Coach Shop").strip()
    PRINTFUL_SELLING_REGION = os.environ.get("PRINTFUL_SELLING_REGION", "australia").strip()
    PRINTFUL_API_BASE = os.environ.get("PRINTFUL_API_BASE", "https://api.printful.com")
    PRINTFUL_REQUEST_TIMEOUT = float(os.environ.get("PRINTFUL_REQUEST_TIMEOUT", "30"))

    # ==========================================================================
    # Async completion polling
    # ==========================================================================
    # Draft order cost calculation: poll every 2s for up to 90s.
    # Order estimation tasks (quotes): poll every 1.5s for up to 45s.
    # Callers should apply their own request timeout above these budgets.
    # ==========================================================================
    ORDER_COSTS_POLL_INTERVAL_MS = int(os.environ.get("ORDER_COSTS_POLL_INTERVAL_MS", "2000"))
    ORDER_COSTS_TIMEOUT_MS = int(os.environ.get("ORDER_COSTS_TIMEOUT_MS", "90000"))
    QUOTE_POLL_INTERVAL_MS = int(os.environ.get("QUOTE_POLL_INTERVAL_MS", "1500"))
    QUOTE_TIMEOUT_MS = int(os.environ.get("QUOTE_TIMEOUT_MS", "45000"))

    # ==========================================================================
    # CORS
    # ==========================================================================
    CORS_ALLOWED_ORIGINS = [
        "https://motocoach.com.au",
        "https://www.motocoach.com.au",
        "https://sydneymotocoach.com",
        "https://www.sydneymotocoach.com",
        "https://smg-mc.vercel.app",
    ]
    CORS_EXTRA_ORIGINS = _env_list("CORS_EXTRA_ORIGINS")
    CORS_ALLOW_PREVIEW = os.environ.get("CORS_ALLOW_PREVIEW", "1") == "1"


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    PRINTFUL_API_KEY = "test-key"
    PRINTFUL_STORE_ID = "store-1"
    PRINTFUL_API_BASE = "https://api.printful.test"
    ORDER_COSTS_POLL_INTERVAL_MS = 0
    ORDER_COSTS_TIMEOUT_MS = 1000
    QUOTE_POLL_INTERVAL_MS = 0
    QUOTE_TIMEOUT_MS = 1000
    CORS_EXTRA_ORIGINS = []
