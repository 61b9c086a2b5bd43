"""
Placement and layer data models.

These are the internal, strongly-typed shapes every upstream placement
record is parsed into at the boundary (see modules.placement_normalizer).
Nothing downstream of the parse step inspects raw JSON shapes again.

Shapes:
    Layer               - one print file attached to a placement
    OrderFile           - a sanitised entry from an item's legacy files[]
    PlacementDefinition - a placement name, its allowed/declared techniques
                          and any inline layers
    PreparedPlacement   - the finalized {placement, technique, layers} sent
                          to Printful
    VariantConfig       - allowed placement/technique combinations for one
                          catalog variant
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


_SEPARATOR_RUN = re.compile(r"[\s-]+")

LARGE_SUFFIX = "_large"


def canonical_placement(value: Any) -> Optional[str]:
    """
    Canonical matching form of a placement name.

    Lower-cased, with each run of whitespace or hyphens collapsed to a
    single underscore. Returns None for empty or non-string input.

    Example:
        canonical_placement("Front Large")  -> "front_large"
        canonical_placement("sleeve-left")  -> "sleeve_left"
    """
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    return _SEPARATOR_RUN.sub("_", trimmed.lower())


@dataclass
class Layer:
    """
    A single print file attached to a placement.

    Exactly what Printful's v2 `layers[]` entries expect. A layer with
    neither file_id nor url is invalid and never constructed by the
    sanitisers.
    """

    type: str = "file"
    """Layer type, Printful only accepts "file" today."""

    file_id: Optional[Any] = None
    """Printful file library id."""

    url: Optional[str] = None
    """Publicly resolvable asset URL."""

    @property
    def is_valid(self) -> bool:
        return bool(self.file_id) or bool(self.url)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the Printful request shape."""
        data: Dict[str, Any] = {"type": self.type}
        if self.file_id:
            data["file_id"] = self.file_id
        if self.url:
            data["url"] = self.url
        return data


@dataclass
class OrderFile:
    """A sanitised entry from an order item's flat `files[]` list."""

    type: Optional[str] = None
    """Declared placement (Printful v1 used `type` for this)."""

    placement: Optional[str] = None
    technique: Optional[str] = None
    file_id: Optional[Any] = None
    url: Optional[str] = None

    @property
    def placement_name(self) -> Optional[str]:
        """The declared placement, preferring `type` over `placement`."""
        return self.type or self.placement

    @property
    def canonical(self) -> Optional[str]:
        return canonical_placement(self.placement_name)

    def to_layer(self) -> Optional[Layer]:
        """Build a file layer, or None when the file has no reference."""
        layer = Layer(file_id=self.file_id, url=self.url)
        return layer if layer.is_valid else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for key in ("type", "placement", "technique", "file_id", "url"):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data


@dataclass
class PlacementDefinition:
    """
    A placement name plus the techniques valid for it.

    `canonical` is always derived from `placement`; it is never stored
    separately, so the two cannot drift apart.
    """

    placement: str
    """Identifier as originally supplied (e.g. "front_large")."""

    techniques: List[str] = field(default_factory=list)
    """Lower-cased technique ids valid here (empty means inherit defaults)."""

    layers: List[Layer] = field(default_factory=list)
    """Layers supplied inline with the placement."""

    technique: Optional[str] = None
    """Technique explicitly requested on an order item's placement."""

    @property
    def canonical(self) -> str:
        return canonical_placement(self.placement) or self.placement.strip().lower()

    def first_technique(self, fallback: Optional[str] = None) -> Optional[str]:
        """First non-empty technique declared here, else fallback."""
        for technique in self.techniques:
            if isinstance(technique, str) and technique.strip():
                return technique.strip()
        return fallback


@dataclass
class PreparedPlacement:
    """A finalized placement, ready for the Printful order payload."""

    placement: str
    technique: str
    layers: List[Layer] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "placement": self.placement,
            "technique": self.technique,
            "layers": [layer.to_dict() for layer in self.layers],
        }


@dataclass
class VariantConfig:
    """
    Allowed placement/technique combinations for one catalog variant.

    Built from the catalog variant's placement dimensions and the parent
    catalog product's technique catalog. Cached per (store, variant id).
    """

    allowed_placements: List[PlacementDefinition] = field(default_factory=list)
    """Unique placements in discovery order (deduplicated by canonical)."""

    allowed_map: Dict[str, PlacementDefinition] = field(default_factory=dict)
    """canonical -> definition, with `_large` aliases in both directions."""

    default_placement: Optional[PlacementDefinition] = None
    default_technique: Optional[str] = None
    allowed_techniques: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Summary for logging/debugging."""
        return {
            "allowed_placements": [
                {"placement": p.placement, "techniques": list(p.techniques)}
                for p in self.allowed_placements
            ],
            "default_placement": self.default_placement.placement if self.default_placement else None,
            "default_technique": self.default_technique,
            "allowed_techniques": list(self.allowed_techniques),
        }
