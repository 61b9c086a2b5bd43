"""
Order item preparation.

Turns one raw order line item into a Printful v2 conformant item. Callers
send anything from fully specified `placements[]` to a bare `files[]` list
with no placement tags, and catalog metadata is just as uneven, so the
preparer works down a ladder of fallbacks:

    explicit placements
      -> placements derived from files[] (grouped by declared placement)
      -> the variant's default placement
      -> first placement takes all untagged files
      -> one placement synthesized from the default

Each prepared placement is aligned against the variant's allowed
placements and its technique is forced into the allowed set, so Printful
never receives a combination it rejects.

Usage:
    prepared = prepare_item(raw_item, variant_config)
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from core.exceptions import OrderPreparationError
from models.placement import (
    Layer,
    OrderFile,
    PlacementDefinition,
    PreparedPlacement,
    VariantConfig,
)
from modules.placement_normalizer import (
    align_placement,
    collect_techniques,
    normalise_technique,
    placements_match,
)


# Used only when neither the variant nor the item names any technique.
FALLBACK_TECHNIQUE = "dtg"

_URL_FIELDS = ("url", "preview_url", "thumbnail_url")


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _first_url(entry: Dict[str, Any]) -> Optional[str]:
    for key in _URL_FIELDS:
        if entry.get(key):
            return entry[key]
    return None


# =============================================================================
# SANITISERS
# =============================================================================

def sanitise_layers(layers: Any) -> List[Layer]:
    """Parse inline layers, dropping any without a file_id or url."""
    if not isinstance(layers, list):
        return []

    sanitised = []
    for raw in layers:
        if not isinstance(raw, dict):
            continue
        layer = Layer(
            type=_text(raw.get("type")) or "file",
            file_id=raw.get("file_id") or raw.get("fileId"),
            url=_first_url(raw),
        )
        if layer.is_valid:
            sanitised.append(layer)
    return sanitised


def _technique_from_options(options: Any) -> Optional[str]:
    """Shopify line items carry the technique as options[{id: "technique"}]."""
    if not isinstance(options, list):
        return None
    for option in options:
        if isinstance(option, dict) and option.get("id") == "technique" and isinstance(option.get("value"), str):
            return normalise_technique(option["value"])
    return None


def sanitise_files(files: Any) -> List[OrderFile]:
    """Parse a legacy flat files[] list, dropping entries without a reference."""
    if not isinstance(files, list):
        return []

    sanitised = []
    for raw in files:
        if not isinstance(raw, dict):
            continue

        placement = _text(raw.get("placement"))
        order_file = OrderFile(
            type=_text(raw.get("type")) or placement,
            placement=placement,
            technique=normalise_technique(raw.get("technique")) or _technique_from_options(raw.get("options")),
            file_id=raw.get("file_id") or raw.get("id"),
            url=_first_url(raw),
        )
        if order_file.file_id or order_file.url:
            sanitised.append(order_file)
    return sanitised


def sanitise_placements(placements: Any) -> List[PlacementDefinition]:
    """Parse an item's structured placements[], dropping unnamed entries."""
    if not isinstance(placements, list):
        return []

    sanitised = []
    for raw in placements:
        if not isinstance(raw, dict):
            continue

        name = _text(raw.get("placement")) or _text(raw.get("type"))
        if not name:
            continue

        techniques: List[str] = []
        collect_techniques(techniques, raw.get("technique"))
        collect_techniques(techniques, raw.get("techniques"))
        collect_techniques(techniques, raw.get("defaultTechnique"))

        sanitised.append(PlacementDefinition(
            placement=name,
            techniques=techniques,
            layers=sanitise_layers(raw.get("layers")),
            technique=normalise_technique(raw.get("technique")),
        ))
    return sanitised


def layers_from_files(files: Iterable[OrderFile]) -> List[Layer]:
    """One file layer per sanitised file, in order."""
    layers = []
    for order_file in files:
        layer = order_file.to_layer()
        if layer is not None:
            layers.append(layer)
    return layers


def derive_placements_from_files(
    files: List[OrderFile],
    default_technique: Optional[str] = None
) -> List[PlacementDefinition]:
    """
    Group files by declared placement into one PlacementDefinition each.

    Files with no declared placement are ignored here; they are picked up
    later by the first-placement fallback.
    """
    grouped: "OrderedDict[str, PlacementDefinition]" = OrderedDict()

    for order_file in files:
        name = order_file.placement_name
        if not name:
            continue

        if name not in grouped:
            grouped[name] = PlacementDefinition(
                placement=name,
                technique=order_file.technique or default_technique,
            )

        layer = order_file.to_layer()
        if layer is not None:
            grouped[name].layers.append(layer)

    return list(grouped.values())


def assign_layers(
    entry: PlacementDefinition,
    aligned: PlacementDefinition,
    files: List[OrderFile],
    fallback_layers: List[Layer],
    index: int
) -> List[Layer]:
    """
    Pick the layers for one placement.

    Inline layers win. Otherwise files tagged with this placement (or its
    `_large` alias) are used. The first placement processed takes every
    file when nothing matched.
    """
    if entry.layers:
        return list(entry.layers)

    if not files:
        return list(fallback_layers)

    targets = {aligned.canonical, entry.canonical}
    matched = [
        layer
        for order_file in files
        if any(placements_match(order_file.canonical, target) for target in targets)
        for layer in [order_file.to_layer()]
        if layer is not None
    ]
    if matched:
        return matched

    # TODO: multi-placement products whose files are all untagged get every
    # file on the first placement; revisit once catalog data shows whether
    # that mis-assigns artwork.
    if index == 0 and fallback_layers:
        return list(fallback_layers)

    return []


# =============================================================================
# ITEM PREPARATION
# =============================================================================

def _resolve_technique(
    entry: PlacementDefinition,
    aligned: PlacementDefinition,
    default_technique: Optional[str],
    config: Optional[VariantConfig]
) -> Optional[str]:
    """Explicit technique, then the aligned placement's, then the default."""
    technique = (
        normalise_technique(entry.technique)
        or normalise_technique(aligned.first_technique(default_technique))
        or default_technique
    )

    allowed = []
    collect_techniques(allowed, aligned.techniques)
    if allowed and technique not in allowed:
        technique = allowed[0]

    if not technique and config and config.allowed_techniques:
        technique = config.allowed_techniques[0]

    return technique


def prepare_item(raw_item: Dict[str, Any], config: Optional[VariantConfig] = None) -> Dict[str, Any]:
    """
    Prepare one order item for the Printful v2 orders API.

    Args:
        raw_item: Caller-supplied line item (files and/or placements)
        config: Allowed placements for the item's catalog variant, if known

    Returns:
        A copy of raw_item with `placements` finalized. `files` is removed
        when any placement carries layers (Printful rejects both forms).

    Raises:
        OrderPreparationError: If no placement/layer combination can be built
    """
    prepared = dict(raw_item)
    if not prepared.get("source"):
        prepared["source"] = "catalog"

    files = sanitise_files(raw_item.get("files"))
    fallback_layers = layers_from_files(files)

    default_placement = config.default_placement if config else None
    default_technique = None
    if config:
        default_technique = normalise_technique(config.default_technique) or (
            config.allowed_techniques[0] if config.allowed_techniques else None
        )

    placements = sanitise_placements(raw_item.get("placements"))

    if not placements and files:
        placements = derive_placements_from_files(files, default_technique)

    if not placements and default_placement is not None:
        placements = [PlacementDefinition(
            placement=default_placement.placement,
            techniques=list(config.allowed_techniques),
            technique=config.default_technique,
        )]

    if not placements:
        raise OrderPreparationError("Unable to determine Printful placements for order item")

    allowed_map = config.allowed_map if config else {}
    finalized: List[PreparedPlacement] = []

    for index, entry in enumerate(placements):
        aligned = align_placement(entry, allowed_map, default_placement) or entry
        technique = _resolve_technique(entry, aligned, default_technique, config)
        layers = assign_layers(entry, aligned, files, fallback_layers, index)

        if not layers or not technique:
            continue

        finalized.append(PreparedPlacement(
            placement=aligned.placement,
            technique=technique,
            layers=layers,
        ))

    if not finalized:
        if default_placement is not None and fallback_layers:
            finalized.append(PreparedPlacement(
                placement=default_placement.placement,
                technique=default_technique or FALLBACK_TECHNIQUE,
                layers=list(fallback_layers),
            ))
        else:
            raise OrderPreparationError("Unable to build Printful placement payload for order item")

    prepared["placements"] = [placement.to_dict() for placement in finalized]

    if any(placement.layers for placement in finalized):
        prepared.pop("files", None)
    else:
        prepared["files"] = [order_file.to_dict() for order_file in files]

    return prepared


def describe_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Compact summary of a prepared item for debug logging."""
    placements = item.get("placements") or []
    return {
        "sync_variant_id": item.get("sync_variant_id"),
        "quantity": item.get("quantity"),
        "file_count": len(item.get("files") or []),
        "placements": [
            {
                "placement": p.get("placement"),
                "technique": p.get("technique"),
                "layer_count": len(p.get("layers") or []),
            }
            for p in placements
        ],
    }
