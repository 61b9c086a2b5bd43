"""
Variant configuration resolver.

Looks up which (placement, technique) combinations a Printful catalog
variant accepts. Two upstream sources are merged:

    GET /v2/catalog-variants/{id}  -> placement_dimensions[].placement
    GET /v2/catalog-products/{id}  -> techniques[].associated_files[].placement

Results are cached per "{store}:{variant}" for the process lifetime. A failed
variant lookup caches None, so a broken catalog entry is only fetched once.

Usage:
    resolver = VariantConfigResolver(client)
    config = resolver.resolve(23133, store_id="12345")
    if config is None:
        # Degrade: item preparation works without catalog hints
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from core.cache import MemoryCache
from core.exceptions import PrintfulAPIError
from core.printful_client import PrintfulClient, extract_data_block
from models.placement import PlacementDefinition, VariantConfig
from modules.placement_normalizer import (
    build_allowed_placement_map,
    normalise_technique,
    pick_first_placement,
)
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)


def variant_cache_key(variant_id: Any, store_id: Optional[str] = None) -> str:
    """Cache key shared by the process cache and per-call memos."""
    return f"{store_id or 'default'}:{variant_id}"


def build_variant_config(
    variant_data: Optional[Dict[str, Any]],
    product_data: Optional[Dict[str, Any]]
) -> VariantConfig:
    """
    Derive a VariantConfig from catalog variant + product detail.

    Pure function - no I/O.

    Args:
        variant_data: Unwrapped catalog variant (may be None)
        product_data: Unwrapped catalog product (may be None)

    Returns:
        VariantConfig (possibly with no allowed placements)
    """
    candidates: List[PlacementDefinition] = []

    dimensions = (variant_data or {}).get("placement_dimensions")
    for dimension in dimensions if isinstance(dimensions, list) else []:
        if isinstance(dimension, dict) and isinstance(dimension.get("placement"), str):
            candidates.append(PlacementDefinition(placement=dimension["placement"]))

    technique_keys: List[str] = []
    techniques = (product_data or {}).get("techniques")

    for technique in techniques if isinstance(techniques, list) else []:
        if not isinstance(technique, dict):
            continue

        key = normalise_technique(technique.get("key") or technique.get("technique"))
        if key and key not in technique_keys:
            technique_keys.append(key)

        associated = technique.get("associated_files")
        for associated_file in associated if isinstance(associated, list) else []:
            if not isinstance(associated_file, dict) or not isinstance(associated_file.get("placement"), str):
                continue
            candidates.append(PlacementDefinition(
                placement=associated_file["placement"],
                techniques=[key] if key else [],
            ))

    allowed_map = build_allowed_placement_map(candidates)

    unique: List[PlacementDefinition] = []
    seen = set()
    for definition in allowed_map.values():
        if definition.canonical not in seen:
            seen.add(definition.canonical)
            unique.append(definition)

    # Placements with no technique association accept any technique
    for definition in unique:
        if not definition.techniques:
            definition.techniques = list(technique_keys)

    default_placement = pick_first_placement(unique)
    fallback_technique = technique_keys[0] if technique_keys else None
    default_technique = (
        default_placement.first_technique(fallback_technique) if default_placement else fallback_technique
    )

    return VariantConfig(
        allowed_placements=unique,
        allowed_map=allowed_map,
        default_placement=default_placement,
        default_technique=default_technique,
        allowed_techniques=technique_keys,
    )


class VariantConfigResolver:
    """
    Fetches and caches VariantConfig per (store, catalog variant).

    Never raises for upstream failures: a variant that cannot be loaded
    resolves to None and the order item is prepared without catalog hints.

    Attributes:
        cache: Backing cache (injected so tests get a fresh one)
    """

    def __init__(self, client: PrintfulClient, cache: Optional[MemoryCache] = None):
        self._client = client
        self.cache = cache if cache is not None else MemoryCache("variant_config")

    def resolve(self, variant_id: Any, store_id: Optional[str] = None) -> Optional[VariantConfig]:
        """
        Resolve the configuration for a catalog variant id.

        Args:
            variant_id: Catalog (not sync) variant id
            store_id: Store scope, part of the cache key

        Returns:
            VariantConfig, or None when the variant could not be fetched
        """
        if not variant_id:
            return None

        key = variant_cache_key(variant_id, store_id)
        if key in self.cache:
            return self.cache.get(key)

        try:
            variant_data = extract_data_block(self._client.get_catalog_variant(variant_id, store_id=store_id))
        except PrintfulAPIError as e:
            logger.warning(f"Failed to fetch catalog variant {variant_id}: {e}")
            self.cache.set(key, None)
            return None

        if not variant_data:
            logger.warning(f"Catalog variant {variant_id} returned no data")
            self.cache.set(key, None)
            return None

        product_data = None
        product_id = variant_data.get("catalog_product_id")
        if product_id:
            try:
                product_data = extract_data_block(self._client.get_catalog_product(product_id, store_id=store_id))
            except PrintfulAPIError as e:
                logger.warning(
                    f"Failed to fetch catalog product {product_id} for variant {variant_id}, "
                    f"continuing without technique catalog: {e}"
                )

        config = build_variant_config(variant_data, product_data)
        logger.debug(f"Resolved variant {variant_id}: {config.to_dict()}")

        self.cache.set(key, config)
        return config
