"""
Infrastructure layer: Trefle API client.

Every list and single-item resource is served by ``list_resource`` and
``get_resource`` from the descriptor table in ``api_constants``; the typed
methods below are thin wrappers over those two functions.
"""
import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

import httpx

from trefle_fetcher.config import get_trefle_token, settings, validate_token_format
from trefle_fetcher.infrastructure.api_constants import (
    ENDPOINTS,
    APIConstants,
    EndpointDescriptor,
    TrefleAPIEndpoints,
)
from trefle_fetcher.infrastructure.rate_limiter import RateLimiter
from trefle_fetcher.services.application.pagination import PaginationWalker

module_logger = logging.getLogger(__name__)


class ExternalAPIError(Exception):
    """Raised for any failed call to the Trefle API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TrefleAPIClient:
    """
    Client for the Trefle plants API.

    Requests are sent one at a time and a failed request is never retried;
    the error goes straight to the caller.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        rate_limiter: Optional[RateLimiter] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the API client.

        Args:
            token: Trefle API token; read from settings when omitted
            base_url: API root; defaults to settings.trefle_api_base_url
            timeout: Request timeout in seconds
            rate_limiter: Pause between pages in get_all_pages
            logger: Logger for request narrative; defaults to the module logger

        Raises:
            ValueError: If no token is provided or configured
        """
        self.logger = logger or module_logger
        self.token = token or get_trefle_token()
        if not validate_token_format(self.token):
            self.logger.warning("Trefle API token looks malformed (expected 10+ characters)")

        self.base_url = (base_url or settings.trefle_api_base_url).rstrip("/")
        self.rate_limiter = rate_limiter or RateLimiter()
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.token}",
                "accept": APIConstants.CONTENT_TYPE_JSON,
            },
            timeout=timeout or settings.request_timeout,
        )

        self.logger.info("TrefleAPIClient initialized successfully")

    async def __aenter__(self) -> "TrefleAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    def _verify_token(self) -> None:
        if not self.token:
            raise ValueError(
                "API token not set. Please provide token during initialization "
                "or set TREFLE_API_TOKEN environment variable."
            )

    def _build_params(self, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Build query parameters: the token plus every non-None option.

        Mapping values (filter, filter_not, order, range) are sent as JSON.
        """
        params: Dict[str, Any] = {"token": self.token}
        for key, value in (options or {}).items():
            if value is None:
                continue
            if isinstance(value, Mapping):
                params[key] = json.dumps(value)
            else:
                params[key] = value
        return params

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make an HTTP request.

        Args:
            method: HTTP method (GET or POST)
            endpoint: API path relative to the base URL
            params: Extra query parameters
            data: JSON body for POST requests

        Returns:
            Response data as dictionary

        Raises:
            ExternalAPIError: If the request fails
        """
        method = method.upper()
        if method not in ("GET", "POST"):
            raise ValueError(f"Unsupported HTTP method: {method}")

        # POST carries only the token in the query string
        query = self._build_params(params if method == "GET" else None)

        try:
            response = await self.client.request(
                method,
                endpoint,
                params=query,
                json=(data or {}) if method == "POST" else None,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.logger.error(
                f"Request failed for {endpoint}: {e.response.status_code} - {e.response.text}"
            )
            raise ExternalAPIError(
                f"API request failed: {e.response.status_code} - {e.response.text}",
                status_code=e.response.status_code,
            )
        except httpx.RequestError as e:
            self.logger.error(f"Request failed for {endpoint}: {str(e)}")
            raise ExternalAPIError(f"API request error: {str(e)}")

        try:
            return response.json()
        except ValueError as e:
            self.logger.error(f"Invalid JSON from {endpoint}: {str(e)}")
            raise ExternalAPIError(
                f"Invalid JSON response: {str(e)}",
                status_code=response.status_code,
            )

    # ==================== GENERIC FETCHES ====================

    @staticmethod
    def _descriptor(key: str) -> EndpointDescriptor:
        try:
            return ENDPOINTS[key]
        except KeyError:
            raise ValueError(f"Unknown Trefle resource: {key}")

    async def _fetch_list(
        self,
        endpoint: str,
        label: str,
        page: Optional[int] = None,
        **query: Any,
    ) -> Dict[str, Any]:
        unknown = set(query) - set(APIConstants.JSON_QUERY_PARAMS) - {"q"}
        if unknown:
            raise ValueError(f"Unsupported query parameters: {', '.join(sorted(unknown))}")

        self._verify_token()
        result = await self._make_request("GET", endpoint, params={**query, "page": page})
        self.logger.info(f"Successfully fetched {label} (page {page or 1})")
        return result

    async def list_resource(
        self,
        key: str,
        page: Optional[int] = None,
        **query: Any,
    ) -> Dict[str, Any]:
        """
        Fetch one page of a list resource.

        Args:
            key: Resource key in ENDPOINTS (e.g. 'kingdoms', 'plants')
            page: Page number; the API defaults to 1
            **query: filter, filter_not, order, range mappings

        Returns:
            Response with 'data', 'links' and 'meta' keys

        Raises:
            ValueError: If filters are given for a resource that does not support them
        """
        descriptor = self._descriptor(key)
        if not descriptor.supports_filters and any(v is not None for v in query.values()):
            raise ValueError(f"The {descriptor.label} endpoint does not support filters")
        return await self._fetch_list(descriptor.path, descriptor.label, page=page, **query)

    async def get_resource(self, key: str, identifier) -> Dict[str, Any]:
        """
        Fetch a single item of a resource by ID or slug.

        Returns:
            Response with a 'data' key
        """
        descriptor = self._descriptor(key)
        self._verify_token()
        result = await self._make_request("GET", descriptor.single_path(identifier))
        self.logger.info(f"Successfully fetched {descriptor.single_label} {identifier}")
        return result

    # ==================== TAXONOMY ENDPOINTS ====================

    async def get_kingdoms(self, page: Optional[int] = None) -> Dict[str, Any]:
        return await self.list_resource("kingdoms", page=page)

    async def get_kingdom(self, kingdom_id) -> Dict[str, Any]:
        return await self.get_resource("kingdoms", kingdom_id)

    async def get_subkingdoms(self, page: Optional[int] = None) -> Dict[str, Any]:
        return await self.list_resource("subkingdoms", page=page)

    async def get_subkingdom(self, subkingdom_id) -> Dict[str, Any]:
        return await self.get_resource("subkingdoms", subkingdom_id)

    async def get_divisions(self, page: Optional[int] = None) -> Dict[str, Any]:
        return await self.list_resource("divisions", page=page)

    async def get_division(self, division_id) -> Dict[str, Any]:
        return await self.get_resource("divisions", division_id)

    async def get_division_classes(self, page: Optional[int] = None) -> Dict[str, Any]:
        return await self.list_resource("division_classes", page=page)

    async def get_division_class(self, class_id) -> Dict[str, Any]:
        return await self.get_resource("division_classes", class_id)

    async def get_division_orders(self, page: Optional[int] = None) -> Dict[str, Any]:
        return await self.list_resource("division_orders", page=page)

    async def get_division_order(self, order_id) -> Dict[str, Any]:
        return await self.get_resource("division_orders", order_id)

    async def get_families(self, page: Optional[int] = None, **query: Any) -> Dict[str, Any]:
        """List families; accepts filter and order."""
        return await self.list_resource("families", page=page, **query)

    async def get_family(self, family_id) -> Dict[str, Any]:
        return await self.get_resource("families", family_id)

    async def get_genera(self, page: Optional[int] = None, **query: Any) -> Dict[str, Any]:
        """List genera; accepts filter and order."""
        return await self.list_resource("genera", page=page, **query)

    async def get_genus(self, genus_id) -> Dict[str, Any]:
        return await self.get_resource("genera", genus_id)

    # ==================== CORE PLANT ENDPOINTS ====================

    async def get_plants(self, page: Optional[int] = None, **query: Any) -> Dict[str, Any]:
        """
        List plants with optional filtering, sorting, and pagination.

        Args:
            page: Page number for pagination
            **query: filter (e.g. {'edible': 'true'}), filter_not,
                order (e.g. {'common_name': 'asc'}), range (e.g.
                {'maximum_height': '1000,10000'}, in cm)

        Returns:
            Response with 'data', 'links', and 'meta' keys
        """
        return await self.list_resource("plants", page=page, **query)

    async def get_plant(self, plant_id) -> Dict[str, Any]:
        """
        Get a specific plant by ID or slug.

        Returns:
            Response whose 'data' holds the plant with main_species, genus, family
        """
        return await self.get_resource("plants", plant_id)

    async def search_plants(self, query: str, page: Optional[int] = None, **filters: Any) -> Dict[str, Any]:
        """
        Search plants across scientific name, common name and synonyms.

        Raises:
            ValueError: If query is empty
        """
        if not query:
            raise ValueError("Search query cannot be empty")

        return await self._fetch_list(
            TrefleAPIEndpoints.PLANTS_SEARCH,
            f"plant search results for '{query}'",
            page=page,
            q=query,
            **filters,
        )

    async def get_plants_by_zone(self, zone_id: str, page: Optional[int] = None, **filters: Any) -> Dict[str, Any]:
        """
        List plants in a distribution zone (TDWG code such as 'usa' or 'eur').

        Raises:
            ValueError: If zone_id is empty
        """
        if not zone_id:
            raise ValueError("Zone ID cannot be empty")

        return await self._fetch_list(
            TrefleAPIEndpoints.get_zone_plants(zone_id),
            f"plants for zone {zone_id}",
            page=page,
            **filters,
        )

    async def get_plants_by_genus(self, genus_id, page: Optional[int] = None, **filters: Any) -> Dict[str, Any]:
        """List plants for a genus."""
        return await self._fetch_list(
            TrefleAPIEndpoints.get_genus_plants(genus_id),
            f"plants for genus {genus_id}",
            page=page,
            **filters,
        )

    async def report_plant(self, plant_id, notes: str) -> Dict[str, Any]:
        """
        Report an error for a plant.

        Raises:
            ValueError: If notes is empty
        """
        if not notes:
            raise ValueError("Notes cannot be empty")

        self._verify_token()
        result = await self._make_request(
            "POST", TrefleAPIEndpoints.get_plant_report(plant_id), data={"notes": notes}
        )
        self.logger.info(f"Successfully reported plant {plant_id}")
        return result

    # ==================== SPECIES ENDPOINTS ====================

    async def get_species_list(self, page: Optional[int] = None, **query: Any) -> Dict[str, Any]:
        """List species; accepts filter, filter_not, order and range."""
        return await self.list_resource("species", page=page, **query)

    async def get_species(self, species_id) -> Dict[str, Any]:
        return await self.get_resource("species", species_id)

    async def search_species(self, query: str, page: Optional[int] = None, **filters: Any) -> Dict[str, Any]:
        """
        Search species by query string.

        Raises:
            ValueError: If query is empty
        """
        if not query:
            raise ValueError("Search query cannot be empty")

        return await self._fetch_list(
            TrefleAPIEndpoints.SPECIES_SEARCH,
            f"species search results for '{query}'",
            page=page,
            q=query,
            **filters,
        )

    async def report_species(self, species_id, notes: str) -> Dict[str, Any]:
        """
        Report an error for a species.

        Raises:
            ValueError: If notes is empty
        """
        if not notes:
            raise ValueError("Notes cannot be empty")

        self._verify_token()
        result = await self._make_request(
            "POST", TrefleAPIEndpoints.get_species_report(species_id), data={"notes": notes}
        )
        self.logger.info(f"Successfully reported species {species_id}")
        return result

    # ==================== DISTRIBUTION ENDPOINTS ====================

    async def get_distributions(self, page: Optional[int] = None) -> Dict[str, Any]:
        return await self.list_resource("distributions", page=page)

    async def get_distribution(self, distribution_id) -> Dict[str, Any]:
        return await self.get_resource("distributions", distribution_id)

    # ==================== CORRECTION ENDPOINTS ====================

    async def get_corrections(self, page: Optional[int] = None) -> Dict[str, Any]:
        return await self.list_resource("corrections", page=page)

    async def get_correction(self, correction_id) -> Dict[str, Any]:
        return await self.get_resource("corrections", correction_id)

    async def get_corrections_for_species(self, record_id) -> Dict[str, Any]:
        self._verify_token()
        result = await self._make_request(
            "GET", TrefleAPIEndpoints.get_corrections_for_species(record_id)
        )
        self.logger.info(f"Successfully fetched corrections for species {record_id}")
        return result

    # ==================== HELPER METHODS ====================

    async def get_all_pages(
        self,
        method_name: str,
        max_pages: Optional[int] = None,
        **kwargs: Any,
    ) -> List[Any]:
        """
        Fetch every page of a list method and combine the items.

        Args:
            method_name: Name of a paginated method ('get_plants', 'search_plants', ...)
            max_pages: Maximum number of pages to fetch (None for all)
            **kwargs: Arguments passed to the method on every page

        Returns:
            Combined 'data' items from all pages

        Raises:
            ValueError: If the method does not exist
        """
        method = getattr(self, method_name, None)
        if method_name.startswith("_") or not callable(method):
            raise ValueError(f"Method '{method_name}' does not exist on TrefleAPIClient")

        async def fetch_page(page: int) -> Dict[str, Any]:
            return await method(page=page, **kwargs)

        walker = PaginationWalker(
            fetch_page,
            max_pages=max_pages,
            rate_limiter=self.rate_limiter,
        )
        return await walker.collect()
