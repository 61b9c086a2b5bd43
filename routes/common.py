"""
Helpers shared by the Printful API blueprints.

Handles request body parsing, order payload validation, recipient
sanitizing, per-request service construction and error rendering.
"""

from __future__ import annotations

import html
from typing import Any, Dict, Optional

import bleach
from flask import current_app, jsonify, request

from core.exceptions import (
    ConfigurationError,
    PollingError,
    PrintfulAPIError,
    RequestValidationError,
    ShopApiError,
)
from core.printful_client import PrintfulClient
from services.catalog_service import CatalogService
from services.order_preparation import OrderPayloadPreparer, order_items_of
from services.order_service import OrderService
from services.shipping_service import ShippingRateService
from services.store_context import StoreContextResolver
from services.variant_config import VariantConfigResolver
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

MAX_RECIPIENT_FIELD_LENGTH = 200


# =============================================================================
# REQUEST PARSING
# =============================================================================

def parse_json_body() -> Optional[Any]:
    """Parsed JSON body, or None when absent or not valid JSON."""
    return request.get_json(silent=True, force=True)


def validate_order_payload(payload: Any) -> None:
    """
    Check an order/quote payload has a recipient and at least one item.

    Raises:
        RequestValidationError: With the message returned to the caller
    """
    if not isinstance(payload, dict):
        raise RequestValidationError("Missing order payload")

    if not isinstance(payload.get("recipient"), dict):
        raise RequestValidationError("Missing recipient information")

    if not order_items_of(payload):
        raise RequestValidationError("Order must include at least one item")


def _sanitize_text(text: str, max_length: int = MAX_RECIPIENT_FIELD_LENGTH) -> str:
    """
    Strip markup from a free-text field.

    bleach escapes the text it keeps; the result is unescaped again because
    it is sent to Printful as JSON, not rendered as HTML.
    """
    text = html.unescape(bleach.clean(text.strip(), tags=[], strip=True)).strip()
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def sanitize_recipient(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Strip markup from every string field of payload["recipient"] in place."""
    recipient = payload.get("recipient")
    if isinstance(recipient, dict):
        for key, value in list(recipient.items()):
            if isinstance(value, str):
                recipient[key] = _sanitize_text(value)
    return payload


# =============================================================================
# SERVICE CONSTRUCTION
# =============================================================================

def require_api_key() -> str:
    """
    Raises:
        ConfigurationError: If PRINTFUL_API_KEY is not set
    """
    api_key = (current_app.config.get("PRINTFUL_API_KEY") or "").strip()
    if not api_key:
        raise ConfigurationError("PRINTFUL_API_KEY", "Printful API key is not configured")
    return api_key


def resolve_store_id() -> Optional[str]:
    """Configured store id, or None when the store is unscoped."""
    if not (current_app.config.get("PRINTFUL_STORE_ID") or "").strip():
        return None

    resolver = StoreContextResolver(current_app.config["STORE_CONTEXT_CACHE"])
    context = resolver.resolve(
        current_app.config.get("PRINTFUL_STORE_ID"),
        current_app.config.get("PRINTFUL_STORE_NAME"),
        current_app.config.get("PRINTFUL_SELLING_REGION"),
    )
    return context["id"]


def build_client(api_key: str, store_id: Optional[str] = None) -> PrintfulClient:
    return PrintfulClient(
        api_key,
        store_id=store_id,
        base_url=current_app.config.get("PRINTFUL_API_BASE"),
        timeout=current_app.config.get("PRINTFUL_REQUEST_TIMEOUT", 30.0),
    )


def build_order_service() -> OrderService:
    """
    Build an OrderService for the current request.

    The variant config cache is process-wide (stored on the app) so catalog
    lookups are shared across requests. Polling waits on the app's
    shutdown event, so in-flight requests stop waiting when the process exits.
    """
    api_key = require_api_key()
    store_id = resolve_store_id()
    client = build_client(api_key, store_id)

    resolver = VariantConfigResolver(client, cache=current_app.config["VARIANT_CONFIG_CACHE"])
    config = current_app.config
    return OrderService(
        client,
        OrderPayloadPreparer(resolver),
        store_id=store_id,
        costs_interval_ms=config.get("ORDER_COSTS_POLL_INTERVAL_MS"),
        costs_timeout_ms=config.get("ORDER_COSTS_TIMEOUT_MS"),
        quote_interval_ms=config.get("QUOTE_POLL_INTERVAL_MS"),
        quote_timeout_ms=config.get("QUOTE_TIMEOUT_MS"),
        cancel_event=config.get("SHUTDOWN_EVENT"),
    )


def build_shipping_service() -> ShippingRateService:
    api_key = require_api_key()
    return ShippingRateService(build_client(api_key, resolve_store_id()))


def build_catalog_service() -> CatalogService:
    """
    Build a CatalogService for the configured store.

    Unlike orders, the catalog cannot be listed unscoped.

    Raises:
        ConfigurationError: If the API key or store id is not set
    """
    api_key = require_api_key()
    config = current_app.config
    store = StoreContextResolver(config["STORE_CONTEXT_CACHE"]).resolve(
        config.get("PRINTFUL_STORE_ID"),
        config.get("PRINTFUL_STORE_NAME"),
        config.get("PRINTFUL_SELLING_REGION"),
    )
    return CatalogService(build_client(api_key, store["id"]), store, cache=config["CATALOG_PLACEMENT_CACHE"])


# =============================================================================
# ERROR RENDERING
# =============================================================================

def error_response(error: ShopApiError, label: str):
    """
    Render a ShopApiError as {error, details} with its HTTP status.

    Validation and configuration errors use their own message; upstream
    and polling errors use `label` with the upstream body (or message) as
    details.
    """
    if isinstance(error, (RequestValidationError, ConfigurationError)):
        return jsonify({"error": error.message}), error.http_status

    if isinstance(error, PollingError):
        body = getattr(error, "body", None)
        return jsonify({
            "error": "Printful cost calculation did not complete",
            "details": body or error.message,
        }), error.http_status

    details = error.message
    if isinstance(error, PrintfulAPIError) and error.body is not None:
        details = error.body

    return jsonify({"error": label, "details": details}), error.http_status
