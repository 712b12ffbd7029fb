"""
Unit tests for the plant record flattener.

Tests cover:
- Summary field copying and synonym truncation
- main_species fields overriding rank/observations
- Image, distribution and source trimming inside the flat record
- Prefixed attribute groups and unit fields
- Genus/family as mapping or string
- Missing main_species
"""
import copy

import pytest

from trefle_fetcher.services.domain.flattener import (
    FLAT_RECORD_FIELDS,
    GROWTH_FIELDS,
    SPECIFICATION_FIELDS,
    SUMMARY_FIELDS,
    flatten_plant_data,
)


# ============================================================
# Summary Fields
# ============================================================

class TestSummaryFields:
    """Tests for fields copied from the list record."""

    def test_summary_fields_copied(self, sample_summary, sample_detail):
        """Non-overridden summary fields should be copied verbatim."""
        result = flatten_plant_data(sample_summary, sample_detail)

        for key in SUMMARY_FIELDS:
            if key in ("rank", "observations"):
                continue
            assert result[key] == sample_summary[key]

    def test_unlisted_summary_fields_dropped(self, sample_summary, sample_detail):
        """Fields outside the rule set (e.g. links) should not be copied."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert "links" not in result

    def test_synonyms_truncated_to_five(self, sample_summary, sample_detail):
        """Seven synonyms should be cut to the first five."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["synonyms"] == sample_summary["synonyms"][:5]

    def test_short_synonyms_kept(self, sample_summary, sample_detail):
        """Lists at or below the limit should be kept as-is."""
        sample_summary["synonyms"] = ["a", "b"]

        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["synonyms"] == ["a", "b"]

    @pytest.mark.parametrize("synonyms", [None, "not a list", 42])
    def test_invalid_synonyms_become_empty(self, sample_summary, sample_detail, synonyms):
        """Missing or non-list synonyms should become an empty list."""
        sample_summary["synonyms"] = synonyms

        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["synonyms"] == []

    def test_missing_summary_field_is_none(self, sample_detail):
        """Missing summary fields should be present with None."""
        result = flatten_plant_data({"id": 1}, sample_detail)

        assert result["id"] == 1
        assert "common_name" in result
        assert result["common_name"] is None


# ============================================================
# main_species Fields
# ============================================================

class TestMainSpeciesFields:
    """Tests for fields copied from main_species."""

    def test_detail_overrides_rank_and_observations(self, sample_summary, sample_detail):
        """rank and observations from main_species should win."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["observations"] == "Europe, Western Asia"
        assert result["rank"] == "species"

    def test_main_species_fields_copied(self, sample_summary, sample_detail):
        """duration, edible_part and edible should be copied."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["duration"] == ["perennial"]
        assert result["edible_part"] == ["seeds"]
        assert result["edible"] is True

    def test_genus_mapping_and_family_string(self, sample_summary, sample_detail):
        """Genus given as mapping and family as string should both yield a name."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["genus"] == "Quercus"
        assert result["family"] == "Fagaceae"


# ============================================================
# Nested Collections
# ============================================================

class TestNestedCollections:
    """Tests for images, distributions and sources."""

    def test_images_trimmed_and_projected(self, sample_summary, sample_detail):
        """Only two images per type, reduced to image_url and copyright."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["images"] == {
            "flower": [
                {"image_url": "https://img/f1.jpg", "copyright": "CC-BY"},
                {"image_url": "https://img/f2.jpg", "copyright": None},
            ]
        }

    def test_native_distributions_sorted_and_truncated(self, sample_summary, sample_detail):
        """Native zones should be sorted by count desc, ties stable, top 5."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["distributions"]["native"] == [
            {"name": "Germany", "species_count": 50},
            {"name": "Spain", "species_count": 30},
            {"name": "Austria", "species_count": 20},
            {"name": "France", "species_count": 10},
            {"name": "Italy", "species_count": 10},
        ]

    def test_empty_distribution_type_omitted(self, sample_summary, sample_detail):
        """An empty introduced list should not appear in the output."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert "introduced" not in result["distributions"]

    def test_first_source_with_url(self, sample_summary, sample_detail):
        """source should be the first entry with a URL, skipping nulls."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["source"]["name"] == "GBIF"

    def test_nested_input_not_mutated(self, sample_summary, sample_detail):
        """Flattening should not modify either input."""
        summary_before = copy.deepcopy(sample_summary)
        detail_before = copy.deepcopy(sample_detail)

        flatten_plant_data(sample_summary, sample_detail)

        assert sample_summary == summary_before
        assert sample_detail == detail_before


# ============================================================
# Prefixed Attribute Groups
# ============================================================

class TestAttributeGroups:
    """Tests for flower/foliage/fruit, specifications and growth."""

    def test_flower_foliage_fruit(self, sample_summary, sample_detail):
        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["flower_color"] == ["yellow"]
        assert result["flower_conspicuous"] is False
        assert result["foliage_texture"] == "medium"
        assert result["foliage_leaf_retention"] is False
        assert result["fruit_shape"] == "ovoid"
        assert result["fruit_seed_persistence"] is None

    def test_specification_units(self, sample_summary, sample_detail):
        """Height sub-mappings should be read through their cm value."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["spec_average_height_cm"] == 2500
        assert result["spec_maximum_height_cm"] == 4000
        assert result["spec_toxicity"] == "low"
        assert len(SPECIFICATION_FIELDS) == 9

    def test_growth_units(self, sample_summary, sample_detail):
        """Each temperature should produce one field per unit."""
        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["growth_row_spacing_cm"] == 800
        assert result["growth_minimum_precipitation_mm"] == 500
        assert result["growth_minimum_temperature_deg_f"] == -22
        assert result["growth_minimum_temperature_deg_c"] == -30
        assert result["growth_maximum_temperature_deg_f"] == 104
        assert result["growth_maximum_temperature_deg_c"] == 40
        assert result["growth_months"] == ["apr", "may"]
        assert len(GROWTH_FIELDS) == 23

    def test_unit_field_with_plain_value(self, sample_summary, sample_detail):
        """A unit field that is not a mapping should yield None."""
        sample_detail["main_species"]["specifications"]["average_height"] = 2500

        result = flatten_plant_data(sample_summary, sample_detail)

        assert result["spec_average_height_cm"] is None


# ============================================================
# Missing Data
# ============================================================

class TestMissingMainSpecies:
    """Tests for detail records without main_species."""

    def test_all_keys_present_without_main_species(self, sample_summary):
        """Every flat record key should exist even with an empty detail."""
        result = flatten_plant_data(sample_summary, {})

        assert tuple(result.keys()) == FLAT_RECORD_FIELDS

    def test_detail_fields_empty_without_main_species(self, sample_summary):
        """Detail-derived fields should be None or empty."""
        result = flatten_plant_data(sample_summary, {"main_species": None})

        assert result["images"] == {}
        assert result["distributions"] == {}
        assert result["source"] is None
        assert result["genus"] is None
        assert result["family"] is None
        assert result["growth_spread_cm"] is None
        assert result["common_name"] == "Oak"

    def test_flatten_is_deterministic(self, sample_summary, sample_detail):
        """Two calls with equal input should give equal output."""
        first = flatten_plant_data(sample_summary, sample_detail)
        second = flatten_plant_data(sample_summary, sample_detail)

        assert first == second


# ============================================================
# Scenario
# ============================================================

def test_oak_scenario():
    """Seven synonyms, string genus and mapping family."""
    summary = {
        "id": 123,
        "common_name": "Oak",
        "synonyms": ["s1", "s2", "s3", "s4", "s5", "s6", "s7"],
    }
    detail = {"main_species": {"genus": "Quercus", "family": {"name": "Fagaceae"}}}

    result = flatten_plant_data(summary, detail)

    assert result["synonyms"] == ["s1", "s2", "s3", "s4", "s5"]
    assert result["genus"] == "Quercus"
    assert result["family"] == "Fagaceae"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
