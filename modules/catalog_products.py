"""
Storefront catalog normalisation.

Printful's sync product endpoints describe the shop's products in the
shapes they were synced with: variants carry prices under several keys,
images are spread over files[], images[], the catalog variant mockup and
single image fields, and print files are tagged with placements the
catalog may know under a different name.

Everything here is a pure function turning those records into the product
cards the storefront renders. Each variant also carries ready-made
fulfilment data (placements, order files, techniques) so the checkout can
submit it to /api/printful-order without another catalog lookup.

Usage:
    product = normalise_product(summary, detail, placement_map)
"""

from __future__ import annotations

import re
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models.placement import Layer, PlacementDefinition, canonical_placement
from modules.money import parse_amount
from modules.placement_normalizer import (
    align_placement,
    build_allowed_placement_map,
    collect_techniques,
    normalise_technique,
    parse_placement_definition,
    pick_first_placement,
)


DEFAULT_CURRENCY = "AUD"
DEFAULT_PLACEMENT = "front_large"
FALLBACK_TECHNIQUE = "dtg"

# Bare placements the storefront's print files use for the large print areas
_PLACEMENT_ALIASES = {"front": "front_large", "back": "back_large"}

# File types that mark mockups rather than print placements
_NON_PLACEMENT_TYPES = ("preview", "default")

_LABEL_SEPARATORS = re.compile(r"^[\s\-/|]+")


def _coalesce(*values: Any) -> Any:
    """First value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def _dig(source: Any, *keys: str) -> Any:
    """Nested dict lookup that returns None on any missing level."""
    for key in keys:
        if not isinstance(source, dict):
            return None
        source = source.get(key)
    return source


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _id_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def normalise_region_name(region: Any) -> Optional[str]:
    """Trimmed, lower-cased selling region, or None."""
    text = _text(region)
    return text.lower() if text else None


# =============================================================================
# PRINT FILES
# =============================================================================

def normalise_placement_value(value: Any) -> Optional[str]:
    """Canonical placement with bare front/back mapped to their large areas."""
    canonical = canonical_placement(value)
    if canonical is None:
        return None
    return _PLACEMENT_ALIASES.get(canonical, canonical)


def _option_value(file: Dict[str, Any], option_id: str) -> Optional[str]:
    options = file.get("options")
    if not isinstance(options, list):
        return None
    for option in options:
        if isinstance(option, dict) and option.get("id") == option_id and isinstance(option.get("value"), str):
            return option["value"]
    return None


def placement_from_file(file: Dict[str, Any]) -> Optional[str]:
    """
    Placement a sync variant file is printed on.

    Checks `placement`, then an options[{id: "placement"}] entry, then
    `type` unless it names a mockup ("preview"/"default").
    """
    if _text(file.get("placement")):
        return normalise_placement_value(file["placement"])

    option = _option_value(file, "placement")
    if option is not None:
        return normalise_placement_value(option)

    file_type = _text(file.get("type"))
    if file_type and file_type.lower() not in _NON_PLACEMENT_TYPES:
        return normalise_placement_value(file_type)

    return None


def technique_from_file(file: Dict[str, Any]) -> Optional[str]:
    return normalise_technique(file.get("technique")) or normalise_technique(_option_value(file, "technique"))


def layer_from_file(file: Dict[str, Any]) -> Optional[Layer]:
    """File layer for a sync variant file, or None without id or url."""
    file_id = None
    for key in ("id", "file_id"):
        value = file.get(key)
        if isinstance(value, (int, str)) and not isinstance(value, bool):
            file_id = value
            break
    url = file.get("url") or file.get("preview_url") or file.get("thumbnail_url") or None
    layer = Layer(file_id=file_id, url=url)
    return layer if layer.is_valid else None


@dataclass
class VariantFulfilment:
    """Placements and order files derived from one sync variant's files."""

    placements: List[Dict[str, Any]] = field(default_factory=list)
    files: List[Dict[str, Any]] = field(default_factory=list)
    default_technique: str = FALLBACK_TECHNIQUE
    available_techniques: List[str] = field(default_factory=list)


def build_variant_fulfilment(
    variant: Dict[str, Any],
    allowed_placements: Iterable[PlacementDefinition] = ()
) -> VariantFulfilment:
    """
    Group a sync variant's print files into placements the catalog accepts.

    Each file's placement is aligned to the allowed placements (falling
    back to the first allowed one). Files without any placement all go to
    a single fallback placement. Order files are deduplicated by
    (placement, reference).
    """
    files = [f for f in variant.get("files") or [] if isinstance(f, dict)]
    allowed = [p for p in (parse_placement_definition(entry) for entry in allowed_placements) if p is not None]
    allowed_map = build_allowed_placement_map(allowed)
    first_allowed = pick_first_placement(allowed)
    base_technique = normalise_technique(first_allowed.first_technique()) if first_allowed else None

    records: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    order_files: List[Dict[str, Any]] = []

    for file in files:
        derived = placement_from_file(file)
        entry = align_placement(derived, allowed_map, first_allowed)
        placement = (entry.placement if entry else None) or derived or (
            first_allowed.placement if first_allowed else None
        )
        technique = (
            technique_from_file(file)
            or (normalise_technique(entry.first_technique()) if entry else None)
            or base_technique
        )

        layer = layer_from_file(file)
        if layer is None:
            continue
        order_files.append({"type": placement or DEFAULT_PLACEMENT, **_reference(layer)})

        if not placement:
            continue

        key = entry.canonical if entry else canonical_placement(placement) or placement
        record = records.get(key)
        if record is None:
            record = records[key] = {"placement": placement, "technique": technique, "techniques": [], "layers": []}
        if not record["technique"]:
            record["technique"] = technique
        if entry:
            collect_techniques(record["techniques"], entry.techniques)
        record["layers"].append(layer)

    placements = list(records.values())

    if not placements and order_files:
        # No file named a placement and the catalog offered none
        placements = [{
            "placement": DEFAULT_PLACEMENT,
            "technique": base_technique,
            "techniques": [],
            "layers": [Layer(file_id=f.get("file_id"), url=f.get("url")) for f in order_files],
        }]

    technique_set: List[str] = []
    for record in placements:
        collect_techniques(technique_set, record["technique"])
        collect_techniques(technique_set, record["techniques"])
    collect_techniques(technique_set, base_technique)

    default_technique = (
        base_technique
        or (placements[0]["technique"] if placements else None)
        or (technique_set[0] if technique_set else None)
        or FALLBACK_TECHNIQUE
    )
    collect_techniques(technique_set, default_technique)

    finalized = []
    for record in placements:
        technique = record["technique"] or default_technique
        techniques = collect_techniques(list(record["techniques"]), technique)
        finalized.append({
            "placement": record["placement"],
            "technique": technique,
            "techniques": techniques,
            "layers": [layer.to_dict() for layer in record["layers"]],
        })

    return VariantFulfilment(
        placements=finalized,
        files=_unique_files(order_files),
        default_technique=default_technique,
        available_techniques=technique_set,
    )


def _reference(layer: Layer) -> Dict[str, Any]:
    data = layer.to_dict()
    data.pop("type", None)
    return data


def _unique_files(order_files: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen = set()
    unique = []
    for order_file in order_files:
        key = (order_file["type"], order_file.get("file_id") or order_file.get("url") or "")
        if key in seen:
            continue
        seen.add(key)
        unique.append(order_file)
    return unique


# =============================================================================
# VARIANTS
# =============================================================================

def extract_catalog_product_id(variant: Any) -> Optional[str]:
    """Catalog product id carried on a sync variant, if any."""
    if not isinstance(variant, dict):
        return None
    candidates = (
        variant.get("catalog_product_id"),
        _dig(variant, "product", "product_id"),
        _dig(variant, "product", "id"),
        variant.get("product_id"),
        _dig(variant, "catalog_product", "id"),
        _dig(variant, "catalog_product", "product_id"),
    )
    for candidate in candidates:
        text = _id_text(candidate)
        if text:
            return text
    return None


def variant_placement_keys(variant: Dict[str, Any]) -> List[str]:
    """Ids a variant's allowed placements may be indexed under, best first."""
    candidates = (
        variant.get("catalog_variant_id"),
        variant.get("variant_id"),
        _dig(variant, "catalog_variant", "id"),
        _dig(variant, "product", "variant_id"),
        variant.get("id"),
        variant.get("product_variant_id"),
    )
    keys = []
    for candidate in candidates:
        text = _id_text(candidate)
        if text and text not in keys:
            keys.append(text)
    return keys


def lookup_variant_placements(
    placement_map: Mapping[str, List[PlacementDefinition]],
    variant: Dict[str, Any]
) -> List[PlacementDefinition]:
    """The catalog product's placements, else the first variant id with any."""
    product_id = extract_catalog_product_id(variant)
    if product_id and placement_map.get(f"product:{product_id}"):
        return placement_map[f"product:{product_id}"]

    for key in variant_placement_keys(variant):
        if placement_map.get(key):
            return placement_map[key]

    return []


def _variant_images(variant: Dict[str, Any]) -> List[Dict[str, Any]]:
    # Catalog variant mockups are colour-specific, so they come first
    catalog_variant = variant.get("catalog_variant")
    mockups = []
    if isinstance(catalog_variant, dict):
        for key in ("mockup_url", "image_url", "image"):
            if catalog_variant.get(key):
                mockups.append({"preview_url": catalog_variant[key]})

    files = [f for f in variant.get("files") or [] if isinstance(f, dict)]
    images = [
        {"preview_url": image} if isinstance(image, str) else image
        for image in variant.get("images") or []
        if isinstance(image, (str, dict))
    ]
    singles = [{"preview_url": url} for url in (variant.get("image"), variant.get("default_image")) if url]
    return mockups + files + images + singles


def _image_url(image: Dict[str, Any]) -> Optional[str]:
    return _text(image.get("preview_url")) or _text(image.get("thumbnail_url")) or _text(image.get("url"))


def option_label(name: str, product_name: Optional[str]) -> str:
    """
    Variant name without the product name prefix.

    Example:
        option_label("Trucker Cap / Brown/ Khaki", "Trucker Cap") -> "Brown/ Khaki"
    """
    label = name
    if product_name and label.startswith(product_name):
        label = _LABEL_SEPARATORS.sub("", label[len(product_name):]).strip()
    return label or name


def normalise_variant(
    variant: Any,
    product_name: Optional[str],
    allowed_placements: Iterable[PlacementDefinition] = ()
) -> Optional[Dict[str, Any]]:
    """
    Storefront shape of one sync variant.

    printfulVariantId is the catalog variant id (what orders and shipping
    rates need); catalogVariantId is the sync variant id.
    """
    if not isinstance(variant, dict):
        return None

    printful_variant_id = _coalesce(variant.get("variant_id"), variant.get("product_variant_id"), variant.get("id"))
    catalog_variant_id = _coalesce(
        variant.get("id"),
        variant.get("catalog_variant_id"),
        _dig(variant, "catalog_variant", "id"),
        _dig(variant, "product", "variant_id"),
    )

    retail_price = parse_amount(_coalesce(
        variant.get("retail_price"),
        variant.get("price"),
        variant.get("default_price"),
        _dig(variant, "prices", "retail", "amount"),
        _dig(variant, "prices", "default", "amount"),
        _dig(variant, "prices", "price"),
    ))
    currency = (
        variant.get("currency")
        or variant.get("retail_currency")
        or _dig(variant, "prices", "retail", "currency")
        or _dig(variant, "prices", "default", "currency")
        or DEFAULT_CURRENCY
    )

    fallback_name = f"Variant {_coalesce(catalog_variant_id, printful_variant_id, '')}".strip()
    name = variant.get("name") or variant.get("title") or fallback_name

    images = _variant_images(variant)
    primary = next((url for url in (_image_url(image) for image in images) if url), None)
    image_urls = list(OrderedDict.fromkeys(url for url in (_image_url(image) for image in images) if url))

    fulfilment = build_variant_fulfilment(variant, allowed_placements)

    return {
        "id": f"printful-variant-{_coalesce(printful_variant_id, catalog_variant_id, name)}",
        "printfulVariantId": printful_variant_id,
        "catalogVariantId": catalog_variant_id,
        "name": name,
        "optionLabel": option_label(name, product_name),
        "sku": variant.get("sku") or variant.get("external_id") or None,
        "retailPrice": retail_price,
        "currency": currency,
        "isEnabled": variant.get("is_ignored") is not True,
        "imageUrl": primary,
        "imageUrls": image_urls,
        "rawName": name,
        "attributes": {
            "size": variant.get("size") or _dig(variant, "option_values", "size") or None,
            "color": variant.get("color") or _dig(variant, "option_values", "color") or None,
        },
        "placements": fulfilment.placements,
        "orderFiles": fulfilment.files,
        "defaultTechnique": fulfilment.default_technique,
        "availableTechniques": fulfilment.available_techniques,
        "productName": product_name,
    }


# =============================================================================
# PRODUCTS
# =============================================================================

def compute_price_range(variants: List[Dict[str, Any]]) -> Dict[str, Any]:
    prices = [price for price in (parse_amount(v.get("retailPrice")) for v in variants) if price is not None]
    if not prices:
        return {"min": 0, "max": 0, "currency": DEFAULT_CURRENCY, "hasMultiplePrices": False}

    low, high = min(prices), max(prices)
    currency = next((v["currency"] for v in variants if v.get("currency")), DEFAULT_CURRENCY)
    return {"min": low, "max": high, "currency": currency, "hasMultiplePrices": low != high}


def collect_images(product: Dict[str, Any], variants: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Unique product and variant image URLs, first alt text wins."""
    product_name = product.get("name")
    images: "OrderedDict[str, str]" = OrderedDict()

    def add(url: Any, alt_text: Optional[str]) -> None:
        text = _text(url)
        if text and text not in images:
            images[text] = alt_text or product_name or "Product image"

    add(product.get("thumbnail_url"), product_name)
    add(product.get("preview_image"), product_name)
    for image in product.get("preview_images") or []:
        if isinstance(image, str):
            add(image, product_name)
        elif isinstance(image, dict):
            add(image.get("preview_url") or image.get("url"), product_name)

    for variant in variants:
        label = variant.get("optionLabel") or variant.get("name") or ""
        add(variant.get("imageUrl"), f"{product_name or 'Product'} - {label}".strip())
        for url in variant.get("imageUrls") or []:
            add(url, f"{product_name or 'Product'} preview")

    return [{"url": url, "altText": alt} for url, alt in images.items()]


def derive_category(product: Any) -> Optional[Dict[str, str]]:
    """
    Category from the catalog product type, else the first tag.

    Example:
        {"product": {"main_category": {"name": "Hats"}}} -> {"id": "hats", "name": "Hats"}
    """
    if not isinstance(product, dict):
        return None

    name = (
        _text(_dig(product, "product", "main_category", "name"))
        or _text(_dig(product, "product", "product_type"))
        or _text(product.get("main_category_name"))
        or _text(product.get("product_type"))
    )
    if not name:
        tags = product.get("tags")
        if isinstance(tags, list) and tags:
            return {"id": tags[0], "name": tags[0]}
        return None

    return {"id": re.sub(r"\s+", "-", name.lower()), "name": name}


def summary_id(summary: Any) -> Optional[Any]:
    if not isinstance(summary, dict):
        return None
    return _coalesce(
        summary.get("id"),
        summary.get("product_id"),
        summary.get("sync_product_id"),
        _dig(summary, "product", "id"),
        _dig(summary, "sync_product", "id"),
    )


def summary_from_list_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Summary of one /sync/products list entry."""
    product = item.get("product") or item.get("sync_product") or {}
    return {
        "id": _coalesce(item.get("id"), item.get("sync_product_id"), product.get("id")),
        "external_id": _coalesce(item.get("external_id"), product.get("external_id")),
        "name": item.get("name") or product.get("name") or "Untitled product",
        "description": product.get("description") or "",
        "thumbnail_url": item.get("thumbnail_url") or product.get("thumbnail_url") or None,
        "tags": product.get("tags") if isinstance(product.get("tags"), list) else [],
        "product": product.get("product") or product or None,
        "variants": item.get("variants"),
        "synced": item.get("synced"),
    }


def summarise_product(summary: Dict[str, Any]) -> Dict[str, Any]:
    """Card shown when details are not requested."""
    return {
        "id": summary_id(summary),
        "externalId": summary.get("external_id") or None,
        "name": summary.get("name") or "Untitled product",
        "thumbnailUrl": summary.get("thumbnail_url") or None,
        "variants": summary.get("variants") or summary.get("variant_count") or None,
        "synced": summary.get("synced") or None,
    }


def sync_variants_of(detail: Any) -> List[Any]:
    """Variants of a /sync/products/{id} response, whatever the envelope."""
    result = detail.get("result") if isinstance(detail, dict) and detail.get("result") is not None else detail
    if not isinstance(result, dict):
        return []
    for candidate in (result.get("sync_variants"), result.get("variants"), _dig(result, "product", "variants")):
        if isinstance(candidate, list):
            return candidate
    return []


def normalise_product(
    summary: Dict[str, Any],
    detail: Any,
    placement_map: Optional[Mapping[str, List[PlacementDefinition]]] = None
) -> Dict[str, Any]:
    """
    Storefront product card built from a list summary and its detail.

    Args:
        summary: Output of summary_from_list_item
        detail: /sync/products/{id} response
        placement_map: Allowed placements by variant id / "product:<id>"
    """
    result = detail.get("result") if isinstance(detail, dict) and detail.get("result") is not None else detail
    if not isinstance(result, dict):
        result = {}
    product = result.get("product") or result.get("sync_product") or result or summary

    product_name = product.get("name") or summary.get("name") or "Product"
    placement_map = placement_map or {}

    variants = []
    for variant in sync_variants_of(detail):
        allowed = lookup_variant_placements(placement_map, variant) if isinstance(variant, dict) else []
        normalised = normalise_variant(variant, product_name, allowed)
        if normalised is not None:
            variants.append(normalised)

    price_range = compute_price_range(variants)
    images = collect_images(product, variants)

    if isinstance(product.get("tags"), list):
        tags = product["tags"]
    elif isinstance(summary.get("tags"), list):
        tags = summary["tags"]
    else:
        tags = []

    category = derive_category(product) or derive_category(summary)
    product_id = _coalesce(product.get("id"), summary_id(summary))

    return {
        "id": f"printful-product-{product_id if product_id is not None else uuid.uuid4().hex[:10]}",
        "printfulId": product_id,
        "externalId": _coalesce(product.get("external_id"), summary.get("external_id")),
        "name": product.get("name") or summary.get("name") or "Untitled product",
        "description": product.get("description") or summary.get("description") or "",
        "thumbnailUrl": product.get("thumbnail_url") or summary.get("thumbnail_url") or (
            images[0]["url"] if images else None
        ),
        "tags": tags,
        "category": category,
        "categoryName": (category or {}).get("name") or (tags[0] if tags else "General"),
        "variants": variants,
        "priceRange": price_range,
        "currency": price_range["currency"],
        "hasMultiplePrices": price_range["hasMultiplePrices"],
        "images": images,
        "defaultVariantId": variants[0]["id"] if variants else None,
    }
