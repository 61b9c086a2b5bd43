"""
Tests for placement canonicalization, parsing and alignment.
"""

import pytest

from models.placement import PlacementDefinition, canonical_placement
from modules.placement_normalizer import (
    align_placement,
    build_allowed_placement_map,
    collect_techniques,
    normalise_technique,
    parse_placement_definition,
    pick_first_placement,
    placements_match,
)


class TestCanonicalPlacement:
    """Test canonical form of placement names."""

    @pytest.mark.parametrize("raw,expected", [
        ("front", "front"),
        ("Front Large", "front_large"),
        ("sleeve-left", "sleeve_left"),
        ("  Back   -  Neck ", "back_neck"),
        ("FRONT_LARGE", "front_large"),
    ])
    def test_canonical_forms(self, raw, expected):
        assert canonical_placement(raw) == expected

    @pytest.mark.parametrize("raw", [
        "Front Large", "sleeve--left", "a - b", "embroidery_chest_left", " x ",
    ])
    def test_idempotent(self, raw):
        once = canonical_placement(raw)
        assert canonical_placement(once) == once

    @pytest.mark.parametrize("raw", [None, "", "   ", 42, ["front"]])
    def test_empty_or_non_string(self, raw):
        assert canonical_placement(raw) is None

    def test_definition_canonical_is_derived(self):
        definition = PlacementDefinition(placement="Front Large")
        assert definition.canonical == "front_large"
        definition.placement = "back"
        assert definition.canonical == "back"


class TestTechniques:
    """Test technique normalisation and collection."""

    def test_normalise(self):
        assert normalise_technique("  DTG ") == "dtg"
        assert normalise_technique("") is None
        assert normalise_technique(None) is None
        assert normalise_technique(5) is None

    def test_collect_dedupes_and_keeps_order(self):
        result = collect_techniques([], ["DTG", ["embroidery", "dtg"], None, "Embroidery", 7])
        assert result == ["dtg", "embroidery"]

    def test_collect_appends_to_target(self):
        target = ["dtg"]
        collect_techniques(target, "sublimation")
        assert target == ["dtg", "sublimation"]


class TestParsePlacementDefinition:
    """Test the boundary parse of upstream placement records."""

    def test_string(self):
        definition = parse_placement_definition("front_large")
        assert definition.placement == "front_large"
        assert definition.techniques == []

    def test_dict_name_fields_in_priority_order(self):
        definition = parse_placement_definition({"id": "back", "name": "ignored"})
        assert definition.placement == "back"

    def test_dict_collects_all_technique_spellings(self):
        definition = parse_placement_definition({
            "placement": "front",
            "technique": "DTG",
            "availableTechniques": ["embroidery"],
            "layers": [{"technique": "sublimation"}],
        })
        assert definition.techniques == ["dtg", "embroidery", "sublimation"]

    def test_unnamed_dict_is_rejected(self):
        assert parse_placement_definition({"techniques": ["dtg"]}) is None

    def test_definition_passes_through(self):
        definition = PlacementDefinition(placement="front")
        assert parse_placement_definition(definition) is definition

    def test_pick_first_skips_unparseable(self):
        first = pick_first_placement([None, {}, "", {"name": "back"}, "front"])
        assert first.placement == "back"


class TestAllowedPlacementMap:
    """Test allowed map construction and _large aliasing."""

    def test_large_alias_both_directions(self):
        allowed = build_allowed_placement_map(["front_large"])
        assert allowed["front"] is allowed["front_large"]

        allowed = build_allowed_placement_map(["front"])
        assert allowed["front_large"] is allowed["front"]

    def test_first_definition_wins(self):
        allowed = build_allowed_placement_map([
            {"placement": "front", "techniques": ["dtg"]},
            {"placement": "Front", "techniques": ["embroidery"]},
        ])
        assert allowed["front"].techniques == ["dtg"]

    def test_earlier_alias_takes_precedence_over_later_entry(self):
        allowed = build_allowed_placement_map(["front", "front_large"])
        assert allowed["front"].placement == "front"
        assert allowed["front_large"].placement == "front"

    def test_symmetry_when_both_exist_explicitly(self):
        allowed = build_allowed_placement_map(["front_large", "front"])
        assert align_placement("front", allowed) is allowed["front"]
        assert align_placement("front_large", allowed) is allowed["front_large"]


class TestAlignPlacement:
    """Test resolving a requested placement against allowed placements."""

    @pytest.fixture
    def allowed(self):
        return build_allowed_placement_map([{"placement": "front_large", "techniques": ["dtg"]}, "back"])

    def test_large_aliasing_symmetry(self, allowed):
        assert align_placement("front", allowed) is align_placement("front_large", allowed)
        assert align_placement("Front Large", allowed).placement == "front_large"

    def test_exact_match(self, allowed):
        assert align_placement({"placement": "back"}, allowed).placement == "back"

    def test_unknown_uses_fallback(self, allowed):
        fallback = PlacementDefinition(placement="front_large")
        assert align_placement("sleeve_left", allowed, fallback) is fallback

    def test_unknown_without_fallback_returns_candidate(self, allowed):
        assert align_placement("sleeve_left", allowed).placement == "sleeve_left"

    def test_no_allowed_map_returns_candidate(self):
        assert align_placement("sleeve_left", {}).placement == "sleeve_left"

    def test_no_allowed_map_and_no_candidate_returns_fallback(self):
        fallback = PlacementDefinition(placement="front")
        assert align_placement(None, None, fallback) is fallback


class TestPlacementsMatch:

    def test_match(self):
        assert placements_match("front", "front")
        assert placements_match("front", "front_large")
        assert placements_match("front_large", "front")

    def test_no_match(self):
        assert not placements_match("front", "back")
        assert not placements_match(None, "front")
        assert not placements_match("front", "")
