"""
Storefront catalog endpoint.

Handles:
- GET /api/printful-catalog - Synced products with variants, prices,
  images and ready-to-order placements

Query parameters:
    includeDetails  "false" returns summaries only (default: details)
    limit           1..100 (default: 50)
    sellingRegion   Region reported back to the storefront (also accepted
                    as selling_region, selling_region_name or region)
"""

from flask import Blueprint, jsonify, request

from core.exceptions import ShopApiError
from logging_config import get_logger

from .common import build_catalog_service, error_response, require_api_key
from .cors import ALL_METHODS, cors_endpoint


# Module logger
logger = get_logger(__name__)

printful_catalog_bp = Blueprint("printful_catalog", __name__)

ERROR_LABEL = "Failed to fetch Printful catalog"

REGION_PARAMS = ("sellingRegion", "selling_region", "selling_region_name", "region")


@printful_catalog_bp.route("/api/printful-catalog", methods=ALL_METHODS)
@cors_endpoint(allowed_methods=("GET",))
def get_catalog():
    """List the store's products for the shop page."""
    include_details = request.args.get("includeDetails") != "false"
    selling_region = next((request.args[name] for name in REGION_PARAMS if request.args.get(name)), None)

    try:
        require_api_key()
        page = build_catalog_service().get_catalog(
            limit=request.args.get("limit"),
            include_details=include_details,
            selling_region=selling_region,
        )
    except ShopApiError as e:
        logger.error(f"Catalog request failed: {e}")
        return error_response(e, ERROR_LABEL)

    response = jsonify(page.body)
    response.status_code = page.status
    response.headers["Cache-Control"] = page.cache_control
    return response
