"""
Domain helpers that bound the nested collections in Trefle plant records.

The API can return dozens of synonyms, images and distribution zones per
plant. These helpers cut them down to a fixed size so records fit in a
tabular file. None of them mutate their input.
"""
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)

DEFAULT_MAX_SYNONYMS = 5
DEFAULT_MAX_IMAGES = 2
DEFAULT_MAX_DISTRIBUTIONS = 5
DISTRIBUTION_TYPES = ("native", "introduced")


def is_sequence(value: Any) -> bool:
    """True for lists and tuples; strings and mappings do not count."""
    return isinstance(value, (list, tuple))


def trim_synonym_list(synonyms: Any, max_synonyms: int = DEFAULT_MAX_SYNONYMS) -> List[Any]:
    """
    Return the first ``max_synonyms`` synonyms in API order.

    Anything that is not a list (missing, null, a string) becomes an empty list.
    """
    if not is_sequence(synonyms):
        return []
    return list(synonyms[:max_synonyms])


def trim_plant_synonyms(
    plants: Any,
    max_synonyms: int = DEFAULT_MAX_SYNONYMS,
) -> Any:
    """
    Trim the synonyms list in each plant record to at most ``max_synonyms``.

    Each record is shallow-copied before trimming. Records whose ``synonyms``
    is missing or not a list pass through untouched, and a non-list input is
    returned as-is.

    Args:
        plants: List of plant records from a list or search endpoint
        max_synonyms: Maximum number of synonyms to keep

    Returns:
        New list of plant records
    """
    if not is_sequence(plants):
        return plants

    trimmed = []
    for plant in plants:
        if not isinstance(plant, Mapping):
            trimmed.append(plant)
            continue

        plant_copy = dict(plant)
        synonyms = plant_copy.get("synonyms")
        if is_sequence(synonyms) and len(synonyms) > max_synonyms:
            plant_copy["synonyms"] = list(synonyms[:max_synonyms])
            logger.debug(
                f"Trimmed synonyms for plant "
                f"'{plant_copy.get('scientific_name') or 'unknown'}' to {max_synonyms}"
            )
        trimmed.append(plant_copy)

    return trimmed


def find_first_source_with_url(sources: Any) -> Optional[Dict[str, Any]]:
    """
    Find the first source mapping that has a truthy ``url``.

    Null and non-mapping entries are skipped.

    Returns:
        The source mapping itself, or None
    """
    if not is_sequence(sources):
        return None

    for source in sources:
        if isinstance(source, Mapping) and source.get("url"):
            return source

    return None


def trim_images(
    images: Any,
    max_images: int = DEFAULT_MAX_IMAGES,
) -> Dict[str, List[Any]]:
    """
    Keep the first ``max_images`` entries per image type, reduced to
    ``image_url`` and ``copyright``.

    Image types with an empty key, a non-list value or no surviving entry
    are left out.
    """
    if not isinstance(images, Mapping):
        return {}

    trimmed: Dict[str, List[Any]] = {}
    for image_type, image_list in images.items():
        if image_type == "" or not is_sequence(image_list) or not image_list:
            continue

        projected = [
            {"image_url": img.get("image_url"), "copyright": img.get("copyright")}
            if isinstance(img, Mapping) else img
            for img in image_list[:max_images]
        ]
        kept = [
            img for img in projected
            if isinstance(img, Mapping) and (img.get("image_url") or img.get("copyright"))
        ]
        if kept:
            trimmed[image_type] = kept

    return trimmed


def _species_count(entry: Mapping) -> float:
    """Numeric sort key; numeric strings count, anything else sorts as 0."""
    count = entry.get("species_count")
    if count is None:
        return 0.0
    try:
        number = float(count)
    except (TypeError, ValueError):
        return 0.0
    # NaN would break the ordering
    return number if number == number else 0.0


def trim_distribution_list(
    zones: Any,
    max_zones: int = DEFAULT_MAX_DISTRIBUTIONS,
) -> List[Dict[str, Any]]:
    """
    Reduce a list of distribution zones to the ``max_zones`` largest.

    Entries are projected to ``name`` and ``species_count`` and sorted by
    ``species_count`` descending. Counts compare as numbers, so numeric
    strings sort with ints; missing or non-numeric counts sort as 0. The
    projected values are kept as given. Equal counts keep their original
    relative order.
    """
    if not is_sequence(zones):
        return []

    projected = [
        {"name": zone.get("name"), "species_count": zone.get("species_count")}
        for zone in zones
        if isinstance(zone, Mapping)
    ]
    # sorted() is stable, so ties stay in API order
    projected = sorted(projected, key=_species_count, reverse=True)
    return projected[:max_zones]


def trim_distributions(
    distributions: Any,
    max_zones: int = DEFAULT_MAX_DISTRIBUTIONS,
    distribution_types: Sequence[str] = DISTRIBUTION_TYPES,
) -> Dict[str, List[Dict[str, Any]]]:
    """Trim the native and introduced zone lists, dropping empty ones."""
    if not isinstance(distributions, Mapping):
        return {}

    trimmed = {}
    for dist_type in distribution_types:
        zones = trim_distribution_list(distributions.get(dist_type) or [], max_zones)
        if zones:
            trimmed[dist_type] = zones
    return trimmed
