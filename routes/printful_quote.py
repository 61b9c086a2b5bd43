"""
Quote endpoint.

Handles:
- POST /api/printful-quote - Estimate order costs without creating an order
"""

from flask import Blueprint, jsonify

from core.exceptions import ShopApiError
from logging_config import get_logger

from .common import (
    build_order_service,
    error_response,
    parse_json_body,
    require_api_key,
    sanitize_recipient,
    validate_order_payload,
)
from .cors import ALL_METHODS, cors_endpoint


# Module logger
logger = get_logger(__name__)

printful_quote_bp = Blueprint("printful_quote", __name__)

ERROR_LABEL = "Failed to generate Printful quote"


@printful_quote_bp.route("/api/printful-quote", methods=ALL_METHODS)
@cors_endpoint(allowed_methods=("POST",))
def create_quote():
    """Estimate costs, retail costs and shipping for a basket."""
    try:
        require_api_key()

        payload = parse_json_body()
        validate_order_payload(payload)
        sanitize_recipient(payload)

        result = build_order_service().create_quote(payload)
    except ShopApiError as e:
        logger.error(f"Quote failed: {e}")
        return error_response(e, ERROR_LABEL)

    return jsonify(result), 200
