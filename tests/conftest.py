"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Sample plant list records and detail records
- Page payload builder
- No-wait rate limiter
- Mock API client
"""
import pytest
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

from trefle_fetcher.infrastructure.rate_limiter import RateLimiter
from trefle_fetcher.infrastructure.trefle_client import TrefleAPIClient


TEST_TOKEN = "test-token-0123456789"
TEST_BASE_URL = "https://trefle.test/api/v1"


def make_page(
    plants: List[Dict[str, Any]],
    page: int = 1,
    has_next: bool = True,
    total: Optional[int] = None,
) -> Dict[str, Any]:
    """Build a list-endpoint payload the way Trefle returns it."""
    links = {
        "self": f"/api/v1/plants?page={page}",
        "first": "/api/v1/plants?page=1",
    }
    if has_next:
        links["next"] = f"/api/v1/plants?page={page + 1}"
    return {
        "data": plants,
        "links": links,
        "meta": {"total": total if total is not None else len(plants)},
    }


def make_plant(plant_id: int, synonyms: int = 0) -> Dict[str, Any]:
    """Build a minimal plant list record."""
    return {
        "id": plant_id,
        "common_name": f"Plant {plant_id}",
        "slug": f"plant-{plant_id}",
        "scientific_name": f"Plantus number{plant_id}",
        "rank": "species",
        "observations": "list observations",
        "synonyms": [f"Synonym {plant_id}-{i}" for i in range(synonyms)],
    }


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def sample_summary() -> Dict[str, Any]:
    """A plant record as returned by the plants list endpoint."""
    return {
        "id": 123,
        "common_name": "Oak",
        "slug": "quercus-robur",
        "scientific_name": "Quercus robur",
        "year": 1753,
        "bibliography": "Sp. Pl.: 996 (1753)",
        "author": "L.",
        "status": "accepted",
        "rank": "species",
        "family_common_name": "Beech family",
        "genus_id": 4242,
        "image_url": "https://images.example/oak.jpg",
        "observations": "Europe to Caucasus",
        "vegetable": False,
        "synonyms": [f"Quercus syn{i}" for i in range(1, 8)],
        "links": {"self": "/api/v1/species/quercus-robur"},
    }


@pytest.fixture
def sample_detail() -> Dict[str, Any]:
    """The ``data`` of a plant detail response with a full main_species."""
    return {
        "id": 123,
        "common_name": "Oak",
        "slug": "quercus-robur",
        "scientific_name": "Quercus robur",
        "main_species": {
            "rank": "species",
            "observations": "Europe, Western Asia",
            "duration": ["perennial"],
            "edible_part": ["seeds"],
            "edible": True,
            "genus": {"id": 4242, "name": "Quercus", "slug": "quercus"},
            "family": "Fagaceae",
            "images": {
                "flower": [
                    {"id": 1, "image_url": "https://img/f1.jpg", "copyright": "CC-BY"},
                    {"id": 2, "image_url": "https://img/f2.jpg", "copyright": None},
                    {"id": 3, "image_url": "https://img/f3.jpg", "copyright": "CC0"},
                ],
                "leaf": [],
                "bark": [{"id": 4, "image_url": None, "copyright": None}],
                "": [{"id": 5, "image_url": "https://img/x.jpg", "copyright": "x"}],
            },
            "distributions": {
                "native": [
                    {"id": 1, "name": "France", "slug": "fra", "species_count": 10},
                    {"id": 2, "name": "Spain", "slug": "spa", "species_count": 30},
                    {"id": 3, "name": "Italy", "slug": "ita", "species_count": 10},
                    {"id": 4, "name": "Germany", "slug": "ger", "species_count": 50},
                    {"id": 5, "name": "Poland", "slug": "pol"},
                    {"id": 6, "name": "Austria", "slug": "aut", "species_count": 20},
                    {"id": 7, "name": "Denmark", "slug": "den", "species_count": 5},
                ],
                "introduced": [],
            },
            "flower": {"color": ["yellow"], "conspicuous": False},
            "foliage": {"texture": "medium", "color": ["green"], "leaf_retention": False},
            "fruit_or_seed": {
                "conspicuous": True,
                "color": ["brown"],
                "shape": "ovoid",
                "seed_persistence": None,
            },
            "sources": [
                None,
                {"id": "a", "name": "POWO", "url": None},
                {"id": "b", "name": "GBIF", "url": "https://gbif.org/123"},
                {"id": "c", "name": "USDA", "url": "https://usda.gov/123"},
            ],
            "specifications": {
                "ligneous_type": "tree",
                "growth_form": "single stem",
                "growth_habit": "Tree",
                "growth_rate": "slow",
                "average_height": {"cm": 2500},
                "maximum_height": {"cm": 4000},
                "nitrogen_fixation": "none",
                "shape_and_orientation": "erect",
                "toxicity": "low",
            },
            "growth": {
                "description": "Slow growing tree",
                "sowing": "autumn",
                "days_to_harvest": None,
                "row_spacing": {"cm": 800},
                "spread": {"cm": 1500},
                "ph_maximum": 7.5,
                "ph_minimum": 4.5,
                "light": 8,
                "atmospheric_humidity": 5,
                "growth_months": ["apr", "may"],
                "bloom_months": ["apr"],
                "fruit_months": ["sep", "oct"],
                "minimum_precipitation": {"mm": 500},
                "maximum_precipitation": {"mm": 1200},
                "minimum_root_depth": {"cm": 150},
                "minimum_temperature": {"deg_f": -22, "deg_c": -30},
                "maximum_temperature": {"deg_f": 104, "deg_c": 40},
                "soil_nutriments": 5,
                "soil_salinity": 1,
                "soil_texture": 6,
                "soil_humidity": 5,
            },
        },
    }


# ============================================================
# Collaborator Fixtures
# ============================================================

@pytest.fixture
def sleep_mock() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def rate_limiter(sleep_mock) -> RateLimiter:
    """Rate limiter that records its pauses instead of sleeping."""
    return RateLimiter(min_delay=2, max_delay=5, sleep=sleep_mock)


@pytest.fixture
def mock_api_client() -> AsyncMock:
    """Mock Trefle client; tests set return values per method."""
    return AsyncMock(spec=TrefleAPIClient)


@pytest.fixture
def api_client(rate_limiter) -> TrefleAPIClient:
    """Real client pointed at a fake base URL, for use with respx."""
    return TrefleAPIClient(
        token=TEST_TOKEN,
        base_url=TEST_BASE_URL,
        rate_limiter=rate_limiter,
    )
