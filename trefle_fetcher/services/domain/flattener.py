"""
Domain service: combine a plant list record with its detail record.

The list endpoints return a light record per plant; the detail endpoint
returns a ``main_species`` tree with nested attribute groups. ``flatten_plant_data``
merges the two into one single-level record that can be written as a CSV
row. Only ``images`` and ``distributions`` stay nested, and both are bounded.

Every key produced here is always present in the output. A missing source
value becomes ``None``; a key is never dropped because its source is absent.
"""
from collections.abc import Mapping
from typing import Any, Dict, Tuple

from trefle_fetcher.domain.models import NamedTaxon
from trefle_fetcher.services.domain.trimmers import (
    DEFAULT_MAX_DISTRIBUTIONS,
    DEFAULT_MAX_IMAGES,
    DEFAULT_MAX_SYNONYMS,
    find_first_source_with_url,
    trim_distributions,
    trim_images,
    trim_synonym_list,
)


# Copied verbatim from the list record
SUMMARY_FIELDS: Tuple[str, ...] = (
    "id",
    "common_name",
    "slug",
    "scientific_name",
    "year",
    "bibliography",
    "author",
    "status",
    "rank",
    "family_common_name",
    "genus_id",
    "image_url",
    "observations",
    "vegetable",
)

# Copied verbatim from main_species; rank and observations overwrite the list values
MAIN_SPECIES_FIELDS: Tuple[str, ...] = (
    "rank",
    "observations",
    "duration",
    "edible_part",
    "edible",
)

# (output key, source key) per attribute group
FLOWER_FIELDS = (
    ("flower_color", "color"),
    ("flower_conspicuous", "conspicuous"),
)

FOLIAGE_FIELDS = (
    ("foliage_texture", "texture"),
    ("foliage_color", "color"),
    ("foliage_leaf_retention", "leaf_retention"),
)

FRUIT_FIELDS = (
    ("fruit_conspicuous", "conspicuous"),
    ("fruit_color", "color"),
    ("fruit_shape", "shape"),
    ("fruit_seed_persistence", "seed_persistence"),
)

# (output key, source key, unit); unit is None for plain values
SPECIFICATION_FIELDS = (
    ("spec_ligneous_type", "ligneous_type", None),
    ("spec_growth_form", "growth_form", None),
    ("spec_growth_habit", "growth_habit", None),
    ("spec_growth_rate", "growth_rate", None),
    ("spec_average_height_cm", "average_height", "cm"),
    ("spec_maximum_height_cm", "maximum_height", "cm"),
    ("spec_nitrogen_fixation", "nitrogen_fixation", None),
    ("spec_shape_and_orientation", "shape_and_orientation", None),
    ("spec_toxicity", "toxicity", None),
)

GROWTH_FIELDS = (
    ("growth_description", "description", None),
    ("growth_sowing", "sowing", None),
    ("growth_days_to_harvest", "days_to_harvest", None),
    ("growth_row_spacing_cm", "row_spacing", "cm"),
    ("growth_spread_cm", "spread", "cm"),
    ("growth_ph_maximum", "ph_maximum", None),
    ("growth_ph_minimum", "ph_minimum", None),
    ("growth_light", "light", None),
    ("growth_atmospheric_humidity", "atmospheric_humidity", None),
    ("growth_months", "growth_months", None),
    ("growth_bloom_months", "bloom_months", None),
    ("growth_fruit_months", "fruit_months", None),
    ("growth_minimum_precipitation_mm", "minimum_precipitation", "mm"),
    ("growth_maximum_precipitation_mm", "maximum_precipitation", "mm"),
    ("growth_minimum_root_depth_cm", "minimum_root_depth", "cm"),
    ("growth_minimum_temperature_deg_f", "minimum_temperature", "deg_f"),
    ("growth_minimum_temperature_deg_c", "minimum_temperature", "deg_c"),
    ("growth_maximum_temperature_deg_f", "maximum_temperature", "deg_f"),
    ("growth_maximum_temperature_deg_c", "maximum_temperature", "deg_c"),
    ("growth_soil_nutriments", "soil_nutriments", None),
    ("growth_soil_salinity", "soil_salinity", None),
    ("growth_soil_texture", "soil_texture", None),
    ("growth_soil_humidity", "soil_humidity", None),
)


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _project(group: Mapping, fields) -> Dict[str, Any]:
    return {output_key: group.get(source_key) for output_key, source_key in fields}


def _project_with_units(group: Mapping, fields) -> Dict[str, Any]:
    projected = {}
    for output_key, source_key, unit in fields:
        value = group.get(source_key)
        if unit is not None:
            value = _mapping(value).get(unit)
        projected[output_key] = value
    return projected


def flatten_plant_data(
    summary: Mapping,
    detail: Mapping,
    max_synonyms: int = DEFAULT_MAX_SYNONYMS,
    max_images: int = DEFAULT_MAX_IMAGES,
    max_distributions: int = DEFAULT_MAX_DISTRIBUTIONS,
) -> Dict[str, Any]:
    """
    Flatten and combine a list record with its detail record.

    Args:
        summary: Plant record from a list or search endpoint
        detail: ``data`` of the plant detail endpoint
        max_synonyms: Synonyms kept from the list record
        max_images: Images kept per image type
        max_distributions: Zones kept per distribution type

    Returns:
        New flat record; inputs are not modified
    """
    summary = _mapping(summary)
    main_species = _mapping(_mapping(detail).get("main_species"))

    flattened: Dict[str, Any] = {key: summary.get(key) for key in SUMMARY_FIELDS}
    flattened["synonyms"] = trim_synonym_list(summary.get("synonyms"), max_synonyms)

    for key in MAIN_SPECIES_FIELDS:
        flattened[key] = main_species.get(key)

    flattened["images"] = trim_images(main_species.get("images"), max_images)
    flattened["distributions"] = trim_distributions(
        main_species.get("distributions"), max_distributions
    )

    flattened.update(_project(_mapping(main_species.get("flower")), FLOWER_FIELDS))
    flattened.update(_project(_mapping(main_species.get("foliage")), FOLIAGE_FIELDS))
    flattened.update(_project(_mapping(main_species.get("fruit_or_seed")), FRUIT_FIELDS))

    flattened["source"] = find_first_source_with_url(main_species.get("sources"))

    flattened.update(_project_with_units(
        _mapping(main_species.get("specifications")), SPECIFICATION_FIELDS
    ))
    flattened.update(_project_with_units(
        _mapping(main_species.get("growth")), GROWTH_FIELDS
    ))

    flattened["genus"] = NamedTaxon.from_raw(main_species.get("genus")).name
    flattened["family"] = NamedTaxon.from_raw(main_species.get("family")).name

    return flattened


FLAT_RECORD_FIELDS: Tuple[str, ...] = tuple(flatten_plant_data({}, {}).keys())
"""Every key of a flattened record, in output order."""
