"""
Storefront catalog service.

Lists the store's synced products and, optionally, loads each product's
detail and the catalog placements its variants accept:

    GET /sync/products?limit=&offset=0       -> product summaries
    GET /sync/products/{id}                  -> sync variants + print files
    GET /v2/catalog-variants/{id}            -> catalog product id (when the
                                                variant does not carry it)
    GET /v2/catalog-products/{id}            -> allowed placements

Catalog placements and variant -> product lookups are cached per store for
the process lifetime. Lookup failures are cached too (as an empty list or
None) and logged as warnings; the product still renders without placement
hints.

A failing product detail does not fail the page: the product is listed
under `errors` and the response status becomes 207.

Usage:
    service = CatalogService(client, store_context, cache)
    page = service.get_catalog(limit=50, include_details=True)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core.cache import MemoryCache
from core.exceptions import PrintfulAPIError
from core.printful_client import PrintfulClient, extract_data_block
from models.placement import PlacementDefinition
from modules.catalog_products import (
    extract_catalog_product_id,
    normalise_product,
    normalise_region_name,
    summarise_product,
    summary_from_list_item,
    summary_id,
    sync_variants_of,
    variant_placement_keys,
)
from modules.placement_normalizer import parse_placement_definition
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100
DEFAULT_SELLING_REGION = "worldwide"

# CDN caching for the storefront; empty catalogs are rechecked sooner
CACHE_CONTROL = "s-maxage=300, stale-while-revalidate=900"
EMPTY_CACHE_CONTROL = "s-maxage=120, stale-while-revalidate=300"

_PRODUCT_HREF = re.compile(r"catalog-products/(\d+)")


def clamp_limit(value: Any) -> int:
    """Parse a ?limit= value into 1..100, defaulting to 50."""
    try:
        limit = int(str(value).strip())
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return min(max(limit, 1), MAX_LIMIT)


@dataclass
class CatalogPage:
    """A catalog response: JSON body, HTTP status and Cache-Control."""
    body: Dict[str, Any]
    status: int = 200
    cache_control: str = CACHE_CONTROL


class CatalogService:
    """
    Builds the storefront catalog for one store.

    Attributes:
        store: Resolved store context ({id, name, source, selling_region})
    """

    def __init__(
        self,
        client: PrintfulClient,
        store: Dict[str, Any],
        cache: Optional[MemoryCache] = None
    ):
        """
        Args:
            client: Printful client
            store: Output of StoreContextResolver.resolve()
            cache: Process-wide cache for catalog placement lookups

        Raises:
            PrintfulAPIError: If the store context has no id
        """
        if not store or not store.get("id"):
            raise PrintfulAPIError("Printful store context did not resolve an id", status=502)

        self._client = client
        self.store = store
        self.cache = cache if cache is not None else MemoryCache("catalog_placements")

    @property
    def store_id(self) -> str:
        return self.store["id"]

    # =========================================================================
    # UPSTREAM LOOKUPS
    # =========================================================================

    def list_summaries(self, limit: int = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
        """First page of the store's synced products as summaries."""
        response = self._client.list_sync_products(limit=limit, offset=0, store_id=self.store_id)

        result = response.get("result") if isinstance(response, dict) else None
        if isinstance(result, dict):
            result = result.get("items")
        if not isinstance(result, list):
            return []

        return [summary_from_list_item(item) for item in result if isinstance(item, dict)]

    def catalog_placements(self, catalog_product_id: str) -> List[PlacementDefinition]:
        """Placements declared by a catalog product ([] when the lookup fails)."""
        cache_key = f"product:{self.store_id}:{catalog_product_id}"
        if cache_key in self.cache:
            return self.cache.get(cache_key)

        try:
            block = extract_data_block(self._client.get_catalog_product(catalog_product_id, store_id=self.store_id))
        except PrintfulAPIError as e:
            logger.warning(f"Failed to fetch catalog product placements for {catalog_product_id}: {e}")
            self.cache.set(cache_key, [])
            return []

        raw = block.get("placements") if isinstance(block, dict) else None
        placements = [p for p in (parse_placement_definition(entry) for entry in raw or []) if p is not None]
        self.cache.set(cache_key, placements)
        return placements

    def resolve_catalog_product_id(self, variant: Dict[str, Any], catalog_variant_id: str) -> Optional[str]:
        """
        Catalog product id for a sync variant.

        Read from the variant when present, else from its catalog variant
        (product.id, product_id, product_details.id / .href).
        """
        cache_key = f"variant:{self.store_id}:{catalog_variant_id}"
        if cache_key in self.cache:
            return self.cache.get(cache_key)

        product_id = extract_catalog_product_id(variant)
        if product_id:
            self.cache.set(cache_key, product_id)
            return product_id

        try:
            block = extract_data_block(self._client.get_catalog_variant(catalog_variant_id, store_id=self.store_id))
        except PrintfulAPIError as e:
            logger.warning(f"Failed to resolve catalog product for variant {catalog_variant_id}: {e}")
            self.cache.set(cache_key, None)
            return None

        product_id = _product_id_from_catalog_variant(block)
        self.cache.set(cache_key, product_id)
        return product_id

    def resolve_variant_placements(self, detail: Any) -> Dict[str, List[PlacementDefinition]]:
        """
        Allowed placements for every variant of a sync product.

        Catalog product placements come first; placements the variant
        declares itself are appended when their canonical name is new.

        Returns:
            Map keyed by the variant's best id and by "product:<id>"
        """
        placement_map: Dict[str, List[PlacementDefinition]] = {}

        for variant in sync_variants_of(detail):
            if not isinstance(variant, dict):
                continue

            keys = variant_placement_keys(variant)
            if not keys:
                continue

            product_id = extract_catalog_product_id(variant) or self.resolve_catalog_product_id(variant, keys[0])
            allowed: List[PlacementDefinition] = []

            if product_id:
                product_placements = self.catalog_placements(product_id)
                if product_placements:
                    allowed = list(product_placements)
                    placement_map[f"product:{product_id}"] = product_placements

            catalog_product = variant.get("product")
            declared = catalog_product.get("placements") if isinstance(catalog_product, dict) else None
            if not isinstance(declared, list):
                declared = variant.get("placements")
            if not isinstance(declared, list):
                declared = []

            seen = {p.canonical for p in allowed}
            for entry in declared:
                definition = parse_placement_definition(entry)
                if definition is not None and definition.canonical not in seen:
                    allowed.append(definition)
                    seen.add(definition.canonical)

            placement_map[keys[0]] = allowed
            if product_id and f"product:{product_id}" not in placement_map:
                placement_map[f"product:{product_id}"] = allowed

        return placement_map

    def load_product(self, summary: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fetch one product's detail and normalise it.

        Raises:
            PrintfulAPIError: Detail fetch failed or the summary has no id
        """
        product_id = summary_id(summary)
        if product_id is None:
            raise PrintfulAPIError("Product summary missing identifier", status=502)

        detail = self._client.get_sync_product(product_id, store_id=self.store_id)
        placement_map = self.resolve_variant_placements(detail)
        return normalise_product(summary, detail, placement_map)

    # =========================================================================
    # CATALOG PAGE
    # =========================================================================

    def get_catalog(
        self,
        limit: int = DEFAULT_LIMIT,
        include_details: bool = True,
        selling_region: Optional[str] = None
    ) -> CatalogPage:
        """
        Build the storefront catalog response.

        Args:
            limit: Products to list (1..100)
            include_details: Load variants/prices/images per product
            selling_region: Overrides the store's configured region

        Returns:
            CatalogPage (status 207 when some product details failed)

        Raises:
            PrintfulAPIError: The product list itself could not be fetched
        """
        region = (
            normalise_region_name(selling_region)
            or normalise_region_name(self.store.get("selling_region"))
            or DEFAULT_SELLING_REGION
        )
        store = dict(self.store, selling_region=region)

        summaries = self.list_summaries(clamp_limit(limit))
        logger.info(f"Printful returned {len(summaries)} products for store {self.store_id} ({region})")

        if not summaries:
            return CatalogPage(
                body={
                    "success": True,
                    "products": [],
                    "store": store,
                    "debug": {
                        "reason": "PRINTFUL_NO_PRODUCTS",
                        "message": "Printful returned zero catalog products for the current store and selling region.",
                        "sellingRegion": region,
                        "storeId": self.store_id,
                    },
                },
                cache_control=EMPTY_CACHE_CONTROL,
            )

        if not include_details:
            return CatalogPage(body={
                "success": True,
                "products": [summarise_product(summary) for summary in summaries],
                "store": store,
            })

        products = []
        errors = []
        for summary in summaries:
            try:
                products.append(self.load_product(summary))
            except PrintfulAPIError as e:
                logger.warning(f"Failed to load product {summary_id(summary)}: {e}")
                errors.append({"productId": summary_id(summary), "message": e.message})

        body: Dict[str, Any] = {"success": not errors, "products": products, "store": store}
        if errors:
            body["errors"] = errors

        return CatalogPage(body=body, status=207 if errors else 200)


def _product_id_from_catalog_variant(block: Any) -> Optional[str]:
    if not isinstance(block, dict):
        return None

    product = block.get("product") if isinstance(block.get("product"), dict) else {}
    details = block.get("product_details") if isinstance(block.get("product_details"), dict) else {}

    for candidate in (
        block.get("catalog_product_id"),
        product.get("id"),
        block.get("product_id"),
        details.get("id"),
        details.get("product_id"),
    ):
        if candidate is not None and str(candidate).strip():
            return str(candidate).strip()

    href = details.get("href")
    if isinstance(href, str):
        match = _PRODUCT_HREF.search(href)
        if match:
            return match.group(1)

    return None
