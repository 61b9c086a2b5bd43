"""
Order payload preparation.

Runs every line item of an inbound order through the item preparer,
resolving each item's catalog variant configuration first.

Catalog vs sync variant ids:
    Printful sync-store variant ids (e.g. 5008952970) and catalog variant
    ids (e.g. 23133) are disjoint namespaces. Only the catalog id can load a
    VariantConfig, so `printfulVariantId` (which storefronts fill with the
    catalog id) is preferred over `variant_id` / `variantId`.

Usage:
    preparer = OrderPayloadPreparer(resolver)
    preparer.prepare_order_payload(payload, api_key=key, store_id=store)
    # payload["items"] and payload["order_items"] now hold prepared items
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from core.exceptions import OrderPreparationError
from models.placement import VariantConfig
from modules.order_items import prepare_item
from services.variant_config import VariantConfigResolver, variant_cache_key
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

VARIANT_ID_FIELDS = ("printfulVariantId", "variant_id", "variantId")


def catalog_variant_id(item: Dict[str, Any]) -> Optional[int]:
    """
    First field of VARIANT_ID_FIELDS that parses as a finite, non-zero number.

    Returns:
        The id as int when integral, else the float, or None
    """
    for field_name in VARIANT_ID_FIELDS:
        value = item.get(field_name)
        if value is None or isinstance(value, bool):
            continue
        try:
            parsed = float(value)
        except (TypeError, ValueError, OverflowError):
            continue
        if not math.isfinite(parsed) or parsed == 0:
            continue
        return int(parsed) if parsed.is_integer() else parsed
    return None


def order_items_of(payload: Any) -> List[Any]:
    """The payload's `items`, falling back to `order_items`."""
    if not isinstance(payload, dict):
        return []
    if isinstance(payload.get("items"), list):
        return payload["items"]
    if isinstance(payload.get("order_items"), list):
        return payload["order_items"]
    return []


class OrderPayloadPreparer:
    """
    Prepares whole orders, item by item.

    Any item that cannot be prepared fails the whole order; a partial
    order is never returned.
    """

    def __init__(self, resolver: VariantConfigResolver):
        self._resolver = resolver

    def prepare_order_items(
        self,
        items: List[Any],
        api_key: Optional[str] = None,
        store_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Prepare a list of raw order items.

        Args:
            items: Raw line items (non-dict entries are skipped)
            api_key: Printful key; without it no variant config is fetched
            store_id: Store scope for catalog lookups

        Returns:
            Prepared items in input order

        Raises:
            OrderPreparationError: Naming the variant id of the failing item
        """
        if not isinstance(items, list) or not items:
            return []

        prepared: List[Dict[str, Any]] = []
        local_configs: Dict[str, Optional[VariantConfig]] = {}

        for item in items:
            if not isinstance(item, dict):
                continue

            variant_id = catalog_variant_id(item)

            config = None
            if variant_id and api_key:
                key = variant_cache_key(variant_id, store_id)
                if key not in local_configs:
                    local_configs[key] = self._resolver.resolve(variant_id, store_id=store_id)
                config = local_configs[key]

            try:
                prepared.append(prepare_item(item, config))
            except OrderPreparationError as e:
                suffix = f" for variant {variant_id}" if variant_id else ""
                logger.error(f"Order item preparation failed{suffix}: {e.message}")
                raise OrderPreparationError(
                    f"Failed to prepare Printful order item{suffix}: {e.message}",
                    variant_id=variant_id
                ) from e

        return prepared

    def prepare_order_payload(
        self,
        payload: Any,
        api_key: Optional[str] = None,
        store_id: Optional[str] = None
    ) -> Any:
        """
        Prepare an order payload in place.

        No-op when the payload has no items. Otherwise both `items` and
        `order_items` are set to the prepared list, since Printful endpoints
        differ in which key they read.

        Returns:
            The same payload object
        """
        items = order_items_of(payload)
        if not items:
            return payload

        prepared = self.prepare_order_items(items, api_key=api_key, store_id=store_id)
        payload["items"] = prepared
        payload["order_items"] = prepared

        logger.info(f"Prepared {len(prepared)} order items")
        return payload
