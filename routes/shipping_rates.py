"""
Shipping rates endpoint.

Handles:
- POST /api/printful-shipping-rates - Shipping options for the checkout page
"""

from flask import Blueprint, jsonify

from core.exceptions import ShopApiError
from logging_config import get_logger

from .common import build_shipping_service, error_response, parse_json_body, require_api_key
from .cors import ALL_METHODS, cors_endpoint


# Module logger
logger = get_logger(__name__)

shipping_rates_bp = Blueprint("shipping_rates", __name__)


@shipping_rates_bp.route("/api/printful-shipping-rates", methods=ALL_METHODS)
@cors_endpoint(allowed_methods=("POST",))
def shipping_rates():
    """Return all shipping options plus the cheapest one."""
    try:
        require_api_key()
        body = parse_json_body()
        result = build_shipping_service().get_rates(body)
    except ShopApiError as e:
        logger.error(f"Shipping rate lookup failed: {e}")
        return error_response(e, e.message)

    return jsonify(result), 200
