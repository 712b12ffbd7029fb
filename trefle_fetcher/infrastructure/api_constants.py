"""
API endpoint constants and configuration.

This module contains all Trefle endpoint paths and related constants.
Every list/single resource is described once in ``ENDPOINTS`` and served by
the client's generic list and single fetch functions.
"""
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class EndpointDescriptor:
    """A Trefle resource with a list endpoint and, usually, a single endpoint."""
    path: str
    label: str
    single_label: Optional[str] = None
    supports_filters: bool = False

    def single_path(self, identifier) -> str:
        return f"{self.path}/{identifier}"


# Trefle API Endpoints
class TrefleAPIEndpoints:
    """Trefle API endpoint paths."""

    PLANTS = "plants"
    PLANTS_SEARCH = "plants/search"
    PLANT_REPORT = "plants/{plant_id}/report"

    SPECIES = "species"
    SPECIES_SEARCH = "species/search"
    SPECIES_REPORT = "species/{species_id}/report"

    ZONE_PLANTS = "distributions/{zone_id}/plants"
    GENUS_PLANTS = "genus/{genus_id}/plants"

    CORRECTIONS_FOR_SPECIES = "corrections/species/{record_id}"

    @classmethod
    def get_zone_plants(cls, zone_id: str) -> str:
        return cls.ZONE_PLANTS.format(zone_id=zone_id)

    @classmethod
    def get_genus_plants(cls, genus_id) -> str:
        return cls.GENUS_PLANTS.format(genus_id=genus_id)

    @classmethod
    def get_plant_report(cls, plant_id) -> str:
        return cls.PLANT_REPORT.format(plant_id=plant_id)

    @classmethod
    def get_species_report(cls, species_id) -> str:
        return cls.SPECIES_REPORT.format(species_id=species_id)

    @classmethod
    def get_corrections_for_species(cls, record_id) -> str:
        return cls.CORRECTIONS_FOR_SPECIES.format(record_id=record_id)


ENDPOINTS: Dict[str, EndpointDescriptor] = {
    # Taxonomy
    "kingdoms": EndpointDescriptor("kingdoms", "kingdoms", "kingdom"),
    "subkingdoms": EndpointDescriptor("subkingdoms", "subkingdoms", "subkingdom"),
    "divisions": EndpointDescriptor("divisions", "divisions", "division"),
    "division_classes": EndpointDescriptor(
        "division_classes", "division classes", "division class"
    ),
    "division_orders": EndpointDescriptor(
        "division_orders", "division orders", "division order"
    ),
    "families": EndpointDescriptor(
        "families", "families", "family", supports_filters=True
    ),
    "genera": EndpointDescriptor("genus", "genera", "genus", supports_filters=True),
    # Plants and species
    "plants": EndpointDescriptor(
        TrefleAPIEndpoints.PLANTS, "plants", "plant",
        supports_filters=True,
    ),
    "species": EndpointDescriptor(
        TrefleAPIEndpoints.SPECIES, "species", "species",
        supports_filters=True,
    ),
    # Distributions and corrections
    "distributions": EndpointDescriptor("distributions", "distributions", "distribution"),
    "corrections": EndpointDescriptor("corrections", "corrections", "correction"),
}


# API Configuration Constants
class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"

    # Query parameters serialized as JSON objects
    JSON_QUERY_PARAMS = ("filter", "filter_not", "order", "range")
