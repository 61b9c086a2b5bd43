"""
Health check endpoint.

Handles:
- /health - Liveness plus configuration status
"""

from flask import Blueprint, current_app, jsonify

from core.exceptions import ConfigurationError
from services.store_context import StoreContextResolver
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    """
    Health check endpoint.

    Always 200 while the process is up; `printful` reports whether the
    API key and store are configured.
    """
    config = current_app.config
    store = None
    try:
        store = StoreContextResolver(config["STORE_CONTEXT_CACHE"]).resolve(
            config.get("PRINTFUL_STORE_ID"),
            config.get("PRINTFUL_STORE_NAME"),
            config.get("PRINTFUL_SELLING_REGION"),
        )
    except ConfigurationError as e:
        logger.debug(f"Health check: {e.message}")

    return jsonify({
        "status": "healthy",
        "environment": config.get("ENVIRONMENT"),
        "printful": {
            "api_key_configured": bool((config.get("PRINTFUL_API_KEY") or "").strip()),
            "store": store,
        },
    })
