"""
Placement and technique normalisation.

Printful exposes placement/technique data in several shapes: bare strings,
objects keyed by `placement`/`id`/`name`/`value`/`type`, technique fields
under half a dozen spellings, and techniques nested inside `layers[]`.
Everything in this module is a pure function that parses those shapes into
PlacementDefinition once, at the boundary.

Large/standard aliasing:
    Printful sells some products with `front_large` and others with `front`
    for what callers think of as the same spot. Maps built here index every
    `*_large` placement under its bare name too (and vice versa), so an order
    asking for "front" resolves to a catalog entry declared as "front_large".
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from models.placement import (
    LARGE_SUFFIX,
    PlacementDefinition,
    canonical_placement,
)


__all__ = [
    "canonical_placement",
    "normalise_technique",
    "collect_techniques",
    "parse_placement_definition",
    "build_allowed_placement_map",
    "pick_first_placement",
    "align_placement",
    "alias_keys",
    "placements_match",
]


# Object keys that may carry the placement name, in priority order.
PLACEMENT_NAME_FIELDS = ("placement", "id", "name", "value", "type")

# Object keys that may carry technique ids.
TECHNIQUE_FIELDS = (
    "technique",
    "techniques",
    "supported_techniques",
    "supportedTechniques",
    "allowed_techniques",
    "allowedTechniques",
    "available_techniques",
    "availableTechniques",
)


def normalise_technique(value: Any) -> Optional[str]:
    """Trimmed, lower-cased technique id, or None for empty/non-string."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed.lower() if trimmed else None


def collect_techniques(target: List[str], source: Any) -> List[str]:
    """
    Append normalised technique ids from source into target.

    Strings are normalised, lists are walked recursively, anything else is
    ignored. Order of first appearance is kept and duplicates are skipped.

    Returns:
        target (for chaining)
    """
    if not source:
        return target

    if isinstance(source, (list, tuple)):
        for item in source:
            collect_techniques(target, item)
        return target

    value = normalise_technique(source)
    if value and value not in target:
        target.append(value)
    return target


def _first_text(entry: Dict[str, Any], fields: Sequence[str]) -> Optional[str]:
    for key in fields:
        candidate = entry.get(key)
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def parse_placement_definition(entry: Any) -> Optional[PlacementDefinition]:
    """
    Parse one upstream placement record into a PlacementDefinition.

    Accepted shapes:
        - PlacementDefinition (returned unchanged)
        - "front_large"
        - {"placement": "front", "techniques": ["dtg", "embroidery"]}
        - {"id": "back", "layers": [{"technique": "DTG"}]}

    Returns:
        PlacementDefinition, or None when no placement name resolves
    """
    if isinstance(entry, PlacementDefinition):
        return entry

    if isinstance(entry, str):
        name = entry.strip()
        return PlacementDefinition(placement=name) if name else None

    if not isinstance(entry, dict):
        return None

    name = _first_text(entry, PLACEMENT_NAME_FIELDS)
    if not name:
        return None

    techniques: List[str] = []
    for key in TECHNIQUE_FIELDS:
        collect_techniques(techniques, entry.get(key))

    layers = entry.get("layers")
    if isinstance(layers, list):
        for layer in layers:
            if isinstance(layer, dict):
                collect_techniques(techniques, layer.get("technique"))
                collect_techniques(techniques, layer.get("techniques"))

    return PlacementDefinition(placement=name, techniques=techniques)


def alias_keys(canonical: str) -> List[str]:
    """The `_large` counterpart(s) of a canonical placement."""
    if canonical.endswith(LARGE_SUFFIX):
        reduced = canonical[: -len(LARGE_SUFFIX)]
        return [reduced] if reduced else []
    return [f"{canonical}{LARGE_SUFFIX}"]


def build_allowed_placement_map(entries: Iterable[Any]) -> Dict[str, PlacementDefinition]:
    """
    Index placements by canonical form.

    The first definition for a canonical key wins. Each definition is also
    indexed under its `_large` alias, unless that key is already taken.
    Dict insertion order follows discovery order.
    """
    allowed: Dict[str, PlacementDefinition] = {}

    for entry in entries:
        definition = parse_placement_definition(entry)
        if definition is None:
            continue

        canonical = definition.canonical
        if not canonical:
            continue

        if canonical not in allowed:
            allowed[canonical] = definition

        for alias in alias_keys(canonical):
            if alias not in allowed:
                allowed[alias] = definition

    return allowed


def pick_first_placement(entries: Iterable[Any]) -> Optional[PlacementDefinition]:
    """First entry that parses to a named placement."""
    for entry in entries or []:
        definition = parse_placement_definition(entry)
        if definition is not None and definition.placement.strip():
            return definition
    return None


def align_placement(
    candidate: Any,
    allowed_map: Optional[Dict[str, PlacementDefinition]],
    fallback: Optional[PlacementDefinition] = None
) -> Optional[PlacementDefinition]:
    """
    Resolve a requested placement against the variant's allowed placements.

    Order of preference:
        1. exact canonical match
        2. `_large` stripped / appended
        3. fallback (the variant's default placement)
        4. the candidate itself

    With no allowed placements known, the candidate is returned as-is.
    """
    definition = parse_placement_definition(candidate)

    if not allowed_map:
        return definition or fallback

    canonical = definition.canonical if definition else canonical_placement(candidate)

    if canonical:
        if canonical in allowed_map:
            return allowed_map[canonical]
        for alias in alias_keys(canonical):
            if alias in allowed_map:
                return allowed_map[alias]

    return fallback or definition


def placements_match(left: Optional[str], right: Optional[str]) -> bool:
    """True when two canonical placements are equal or `_large` aliases."""
    if not left or not right:
        return False
    if left == right:
        return True
    return right in alias_keys(left)
