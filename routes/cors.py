"""
CORS handling for the public API endpoints.

The storefront pages live on a handful of known origins plus Vercel
preview deployments. Requests from anywhere else are refused with 403
before the handler runs. Requests without an Origin header (server to
server, curl) pass through without CORS headers.

Usage:
    @orders_bp.route("/api/printful-order", methods=ALL_METHODS)
    @cors_endpoint(allowed_methods=("POST",))
    def create_order():
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Iterable, Optional, Sequence
from urllib.parse import urlparse

from flask import current_app, jsonify, make_response, request

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

# Registered on each API rule so the method check below (not Flask's
# router) decides 405s, after the origin check
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

DEFAULT_ALLOWED_HEADERS = ("Content-Type",)


@dataclass(frozen=True)
class OriginDecision:
    """Result of checking a request Origin against the allow-list."""
    origin: Optional[str]
    allowed: bool
    preview: bool = False


def is_preview_origin(origin: Optional[str]) -> bool:
    """True for https://<anything>.vercel.app deployments."""
    if not origin:
        return False
    hostname = urlparse(origin).hostname or ""
    return hostname.lower().endswith(".vercel.app")


def evaluate_origin(
    origin: Optional[str],
    allowed_origins: Iterable[str],
    extra_origins: Iterable[str] = (),
    allow_preview: bool = True
) -> OriginDecision:
    """
    Decide whether an Origin may call the API.

    Args:
        origin: Request Origin header (may be empty)
        allowed_origins: Default allow-list
        extra_origins: Additional origins from configuration
        allow_preview: Accept *.vercel.app preview deployments

    Returns:
        OriginDecision (allowed is False for an empty origin)
    """
    if not origin:
        return OriginDecision(origin=None, allowed=False)

    allowed = {o.strip() for o in list(allowed_origins) + list(extra_origins) if o and o.strip()}
    if origin in allowed:
        return OriginDecision(origin=origin, allowed=True)

    if allow_preview and is_preview_origin(origin):
        return OriginDecision(origin=origin, allowed=True, preview=True)

    return OriginDecision(origin=None, allowed=False)


def _append_vary(response, value: str) -> None:
    existing = [v.strip() for v in (response.headers.get("Vary") or "").split(",") if v.strip()]
    if value not in existing:
        existing.append(value)
    response.headers["Vary"] = ", ".join(existing)


def _apply_headers(response, decision: OriginDecision, methods: Sequence[str], headers: Sequence[str]):
    if decision.allowed:
        response.headers["Access-Control-Allow-Origin"] = decision.origin
        _append_vary(response, "Origin")
    response.headers["Access-Control-Allow-Methods"] = ", ".join(methods)
    response.headers["Access-Control-Allow-Headers"] = ", ".join(headers)
    return response


def cors_endpoint(
    allowed_methods: Sequence[str] = ("POST",),
    allowed_headers: Sequence[str] = DEFAULT_ALLOWED_HEADERS
):
    """
    Decorator applying CORS, preflight and method checks to a view.

    Order of checks:
        1. OPTIONS preflight -> 200 (allowed or no origin) / 403
        2. Disallowed origin -> 403 {"error": "Origin not allowed"}
        3. Method not in allowed_methods -> 405 with Allow header
        4. The view itself; CORS headers are added to its response
    """
    cors_methods = list(allowed_methods) + ["OPTIONS"]

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            origin = request.headers.get("Origin", "")
            decision = evaluate_origin(
                origin,
                current_app.config.get("CORS_ALLOWED_ORIGINS", []),
                current_app.config.get("CORS_EXTRA_ORIGINS", []),
                current_app.config.get("CORS_ALLOW_PREVIEW", True),
            )

            if request.method == "OPTIONS":
                status = 200 if decision.allowed or not origin else 403
                response = make_response("", status)
                return _apply_headers(response, decision, cors_methods, allowed_headers)

            if origin and not decision.allowed:
                logger.warning(f"Rejected request from origin {origin} to {request.path}")
                response = make_response(jsonify({"error": "Origin not allowed"}), 403)
                return _apply_headers(response, decision, cors_methods, allowed_headers)

            if request.method not in allowed_methods:
                response = make_response(jsonify({"error": "Method not allowed"}), 405)
                response.headers["Allow"] = ", ".join(allowed_methods)
                return _apply_headers(response, decision, cors_methods, allowed_headers)

            response = make_response(view(*args, **kwargs))
            return _apply_headers(response, decision, cors_methods, allowed_headers)

        return wrapped

    return decorator
