"""
Printful REST API client.

Thin wrapper over a requests.Session that knows how to authenticate,
scope requests to a store, and turn non-2xx answers into PrintfulAPIError.
It has no opinion about order payloads - that lives in the preparation
services.

Endpoints used:
    GET  /v2/catalog-variants/{id}        - variant placement dimensions
    GET  /v2/catalog-products/{id}        - technique catalog
    GET  /sync/products?limit=&offset=    - storefront product list
    GET  /sync/products/{id}              - storefront product detail
    POST /v2/orders?confirm=false         - create draft order
    GET  /v2/orders/{id}                  - poll order costs
    POST /v2/orders/{id}/confirm          - confirm draft
    POST /v2/order-estimation-tasks       - start a quote
    GET  /v2/order-estimation-tasks?id=   - poll a quote
    POST /shipping/rates                  - shipping options

Usage:
    client = PrintfulClient(api_key, store_id="12345")
    response = client.create_draft_order(payload)
    order_id = extract_order_id(response)
    order = client.get_order(order_id)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote as url_quote

import requests
from requests.exceptions import RequestException, Timeout

from .exceptions import ConfigurationError, PrintfulAPIError


DEFAULT_API_BASE = "https://api.printful.com"

logger = logging.getLogger("moto_shop_web.core.printful_client")


def _resolve_store_id(explicit: Any) -> Optional[str]:
    """Return a trimmed store id string, or None when blank."""
    if explicit is None:
        return None
    value = str(explicit).strip()
    return value or None


class PrintfulClient:
    """
    Bearer-token authenticated Printful API client.

    Each request carries Authorization and Content-Type headers, plus
    X-PF-Store-Id when a store is known (per-call store_id wins over the
    client default).

    Attributes:
        base_url: API root without trailing slash
        store_id: Default store scope for requests
    """

    def __init__(
        self,
        api_key: Optional[str],
        store_id: Optional[str] = None,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            api_key: Printful private token
            store_id: Default store id for X-PF-Store-Id
            base_url: API root (override for tests/sandboxes)
            timeout: Per-request timeout in seconds
            session: Optional pre-built requests.Session

        Raises:
            ConfigurationError: If api_key is empty
        """
        if not api_key or not str(api_key).strip():
            raise ConfigurationError("PRINTFUL_API_KEY", "Printful API key is not configured")

        self._api_key = str(api_key).strip()
        self.store_id = _resolve_store_id(store_id)
        self.base_url = (base_url or DEFAULT_API_BASE).rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def api_key(self) -> str:
        return self._api_key

    def build_headers(self, store_id: Optional[str] = None, json_body: bool = True) -> Dict[str, str]:
        """Build request headers for a single call."""
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if json_body:
            headers["Content-Type"] = "application/json"

        resolved_store = _resolve_store_id(store_id) or self.store_id
        if resolved_store:
            headers["X-PF-Store-Id"] = resolved_store
        return headers

    def url_for(self, path_or_url: str) -> str:
        """Absolute URLs pass through; paths are joined to base_url."""
        if path_or_url.startswith("http://") or path_or_url.startswith("https://"):
            return path_or_url
        return f"{self.base_url}/{path_or_url.lstrip('/')}"

    # =========================================================================
    # HTTP LAYER
    # =========================================================================

    def request(
        self,
        method: str,
        path_or_url: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        store_id: Optional[str] = None
    ) -> Any:
        """
        Execute a request and return the parsed JSON body.

        A body that is not valid JSON is returned as None.

        Raises:
            PrintfulAPIError: On non-2xx status (status and body preserved)
                or transport failure (status 502/504)
        """
        url = self.url_for(path_or_url)

        try:
            response = self._session.request(
                method,
                url,
                headers=self.build_headers(store_id),
                json=json,
                params=params,
                timeout=self._timeout,
            )
        except Timeout as e:
            logger.error(f"Printful {method} {url} timed out after {self._timeout}s")
            raise PrintfulAPIError(
                f"Request to Printful timed out after {self._timeout}s",
                status=504,
                url=url
            ) from e
        except RequestException as e:
            logger.error(f"Printful {method} {url} failed: {e}")
            raise PrintfulAPIError(
                f"Could not reach Printful: {e}",
                status=502,
                url=url
            ) from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            logger.warning(f"Printful {method} {url} returned HTTP {response.status_code}")
            raise PrintfulAPIError(
                "Printful API request failed",
                status=response.status_code,
                body=data,
                url=url
            )

        return data

    # =========================================================================
    # CATALOG
    # =========================================================================

    def get_catalog_variant(self, variant_id: int, store_id: Optional[str] = None) -> Any:
        return self.request("GET", f"/v2/catalog-variants/{url_quote(str(variant_id), safe='')}", store_id=store_id)

    def get_catalog_product(self, product_id: int, store_id: Optional[str] = None) -> Any:
        return self.request("GET", f"/v2/catalog-products/{url_quote(str(product_id), safe='')}", store_id=store_id)

    def list_sync_products(self, limit: int = 50, offset: int = 0, store_id: Optional[str] = None) -> Any:
        """One page of the store's synced (storefront) products."""
        return self.request(
            "GET",
            "/sync/products",
            params={"limit": str(limit), "offset": str(offset)},
            store_id=store_id
        )

    def get_sync_product(self, product_id: Any, store_id: Optional[str] = None) -> Any:
        """A synced product with its sync_variants."""
        return self.request("GET", f"/sync/products/{url_quote(str(product_id), safe='')}", store_id=store_id)

    # =========================================================================
    # ORDERS
    # =========================================================================

    def create_draft_order(self, payload: Dict[str, Any], store_id: Optional[str] = None) -> Any:
        """Create an unconfirmed order; Printful calculates costs asynchronously."""
        return self.request("POST", "/v2/orders", json=payload, params={"confirm": "false"}, store_id=store_id)

    def get_order(self, order_id: Any, store_id: Optional[str] = None) -> Any:
        return self.request("GET", f"/v2/orders/{url_quote(str(order_id), safe='')}", store_id=store_id)

    def confirm_order(
        self,
        order_id: Any,
        confirm_url: Optional[str] = None,
        store_id: Optional[str] = None
    ) -> Any:
        """
        Confirm a draft order for fulfillment.

        Args:
            order_id: Printful order id
            confirm_url: The order's _links.order_confirmation.href, if present
            store_id: Store scope override
        """
        endpoint = confirm_url or f"/v2/orders/{url_quote(str(order_id), safe='')}/confirm"
        return self.request("POST", endpoint, store_id=store_id)

    # =========================================================================
    # ESTIMATION TASKS / SHIPPING
    # =========================================================================

    def create_estimation_task(self, payload: Dict[str, Any], store_id: Optional[str] = None) -> Any:
        return self.request("POST", "/v2/order-estimation-tasks", json=payload, store_id=store_id)

    def get_estimation_task(self, task_id: Any, store_id: Optional[str] = None) -> Any:
        return self.request("GET", "/v2/order-estimation-tasks", params={"id": str(task_id)}, store_id=store_id)

    def get_shipping_rates(self, payload: Dict[str, Any], store_id: Optional[str] = None) -> Any:
        return self.request("POST", "/shipping/rates", json=payload, store_id=store_id)


# =============================================================================
# RESPONSE HELPERS
# =============================================================================

def extract_data_block(response: Any) -> Optional[Dict[str, Any]]:
    """
    Unwrap Printful's response envelope.

    v2 endpoints use {"data": {...}}, v1 endpoints use {"result": {...}};
    anything else is returned as-is.
    """
    if not isinstance(response, dict):
        return None

    data = response.get("data")
    if isinstance(data, dict):
        return data

    result = response.get("result")
    if isinstance(result, dict):
        return result

    return response


def extract_order_data(response: Any) -> Optional[Dict[str, Any]]:
    """Return the order object from a create/get/confirm response."""
    if not isinstance(response, dict):
        return None

    result = response.get("result")
    if isinstance(result, dict):
        if isinstance(result.get("order"), dict):
            return result["order"]
        return result

    data = response.get("data")
    if isinstance(data, dict):
        return data

    return response


def extract_order_id(response: Any) -> Optional[Any]:
    """Find the order id in any of the envelope shapes Printful uses."""
    order = extract_order_data(response)
    if not isinstance(order, dict):
        return None

    for key in ("id", "order_id"):
        if order.get(key):
            return order[key]

    if isinstance(response, dict) and response.get("id"):
        return response["id"]

    return None


def extract_task_id(response: Any) -> Optional[Any]:
    """Estimation tasks return {"data": {"id": "..."}}."""
    block = extract_data_block(response)
    if isinstance(block, dict) and block.get("id"):
        return block["id"]
    return None


def extract_confirm_url(*responses: Any) -> Optional[str]:
    """Return the first _links.order_confirmation.href found."""
    for response in responses:
        if not isinstance(response, dict):
            continue
        for candidate in (response, response.get("data")):
            if not isinstance(candidate, dict):
                continue
            links = candidate.get("_links")
            if isinstance(links, dict):
                link = links.get("order_confirmation")
                href = link.get("href") if isinstance(link, dict) else link
                if isinstance(href, str) and href.strip():
                    return href.strip()
    return None
