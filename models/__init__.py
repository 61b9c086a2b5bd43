"""
Data models for Moto Shop Web.

This module contains dataclasses for:
- Layer / OrderFile: Artwork references on an order item
- PlacementDefinition / PreparedPlacement: Print placements before and after preparation
- VariantConfig: What a catalog variant accepts
- PollResult / JobStatus: Outcome of waiting on a Printful async job

Raw Printful JSON is parsed into these at the boundary; the preparation
code never reads untyped dicts for placements.
"""

from .placement import (
    Layer,
    OrderFile,
    PlacementDefinition,
    PreparedPlacement,
    VariantConfig,
    canonical_placement,
)
from .job_result import JobStatus, PollResult

__all__ = [
    # Placement models
    "Layer",
    "OrderFile",
    "PlacementDefinition",
    "PreparedPlacement",
    "VariantConfig",
    "canonical_placement",
    # Job models
    "JobStatus",
    "PollResult",
]
