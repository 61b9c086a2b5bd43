"""
Order submission endpoint.

Handles:
- POST /api/printful-order - Create, cost and confirm a Printful order
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

printful_order_bp = Blueprint("printful_order", __name__)

ERROR_LABEL = "Failed to process Printful order"


@printful_order_bp.route("/api/printful-order", methods=ALL_METHODS)
@cors_endpoint(allowed_methods=("POST",))
def create_order():
    """
    Submit an order to Printful.

    Flow:
    1. Config check (500 if no API key)
    2. Parse + validate body (400)
    3. Drop emailContext, sanitize recipient
    4. OrderService: prepare -> draft -> wait for costs -> confirm

    The request blocks while Printful calculates costs (up to
    ORDER_COSTS_TIMEOUT_MS).
    """
    try:
        require_api_key()

        payload = parse_json_body()
        if isinstance(payload, dict):
            # Confirmation emails are sent elsewhere
            payload.pop("emailContext", None)
        validate_order_payload(payload)
        sanitize_recipient(payload)

        service = build_order_service()
        result = service.create_order(payload)
    except ShopApiError as e:
        logger.error(f"Order submission failed: {e}")
        return error_response(e, ERROR_LABEL)

    logger.info("Order submitted successfully")
    return jsonify(result), 200
