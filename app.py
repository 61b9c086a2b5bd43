"""
Moto Shop Web - Flask Application Entry Point.

This is a slim app factory that:
1. Loads .env and the config class
2. Configures logging
3. Creates the process-wide caches (catalog variants, store context,
   catalog placements) and the shutdown event
4. Registers route blueprints
5. Sets up JSON error handlers

ARCHITECTURE:
    Request thread
    ├── CORS / method / config / body checks
    ├── OrderService (own PrintfulClient per request)
    │   ├── OrderPayloadPreparer -> VariantConfigResolver (shared cache)
    │   └── CompletionPoller (blocks up to the polling budget, stops on shutdown)
    ├── CatalogService -> StoreContextResolver, placement lookups (shared cache)
    └── JSON response

A missing PRINTFUL_API_KEY does not stop the app from starting; the
Printful endpoints answer 500 until it is configured.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
import threading
import uuid
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import setup_logging, get_logger
from core.cache import MemoryCache
from core.exceptions import ShopApiError
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In a frozen bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def create_app(config_object: str = "config.Config") -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the config class
            (e.g. "config.TestingConfig")

    Returns:
        Configured Flask application
    """
    # Use override=True so .env file always takes precedence over shell environment
    base_path = _get_base_path()
    env_file = base_path / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(log_level=log_level, enable_file_logging=enable_file_logging)

    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting Moto Shop Web in {app.config.get('ENVIRONMENT')} mode")

    if not app.config.get("PRINTFUL_API_KEY"):
        logger.warning("PRINTFUL_API_KEY is not set - Printful endpoints will return 500")
    if not app.config.get("PRINTFUL_STORE_ID"):
        logger.warning("PRINTFUL_STORE_ID is not set - requests will not be store scoped")

    # =========================================================================
    # SHARED CACHES
    # =========================================================================

    app.config["VARIANT_CONFIG_CACHE"] = MemoryCache("variant_config")
    app.config["STORE_CONTEXT_CACHE"] = MemoryCache("store_context")
    app.config["CATALOG_PLACEMENT_CACHE"] = MemoryCache("catalog_placements")

    # Set on shutdown; order/quote polling waits on it between attempts
    shutdown_event = threading.Event()
    app.config["SHUTDOWN_EVENT"] = shutdown_event

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        shutdown_event.set()

    atexit.register(cleanup)

    # =========================================================================
    # REQUEST CONTEXT
    # =========================================================================

    @app.before_request
    def assign_request_id():
        g.request_id = uuid.uuid4().hex[:8]

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(ShopApiError)
    def handle_shop_error(e: ShopApiError):
        logger.error(f"Unhandled application error: {e}")
        return jsonify({"error": e.message, "details": e.details or None}), e.http_status

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        max_kb = app.config.get("MAX_CONTENT_LENGTH", 1024 * 1024) / 1024
        return jsonify({"error": f"Request body too large (max {max_kb:.0f} KB)"}), 413

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e: HTTPException):
        response = jsonify({"error": "Method not allowed"})
        response.status_code = 405
        for name, value in e.get_headers():
            if name == "Allow":
                response.headers["Allow"] = value
        return response

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode)
