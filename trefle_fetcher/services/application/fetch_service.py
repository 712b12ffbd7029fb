"""
Application service: orchestrates fetching Trefle data and saving it.

Coordinates the API client, the pagination walker, the batch accumulator,
the flattener and the file store. No flattening or trimming logic lives
here, only sequencing, logging and error recovery.

Every operation takes ``dry_run``. A dry run makes no network calls and
writes no files; it logs what would happen, including where batch
boundaries would fall.
"""
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from trefle_fetcher.config import Settings, settings
from trefle_fetcher.domain.models import Batch, CallResult, PageResponse
from trefle_fetcher.infrastructure.file_store import get_file_extension, write_to_file
from trefle_fetcher.infrastructure.rate_limiter import RateLimiter
from trefle_fetcher.infrastructure.trefle_client import ExternalAPIError, TrefleAPIClient
from trefle_fetcher.services.application.batching import BatchAccumulator
from trefle_fetcher.services.application.pagination import PaginationWalker, StopReason
from trefle_fetcher.services.domain.flattener import flatten_plant_data
from trefle_fetcher.services.domain.trimmers import trim_plant_synonyms

module_logger = logging.getLogger(__name__)

BANNER = "=" * 60

# (list flag, single flag) in fetch order
TAXONOMY_RESOURCES = (
    ("kingdoms", "kingdom"),
    ("subkingdoms", "subkingdom"),
    ("divisions", "division"),
    ("division_classes", "division_class"),
    ("division_orders", "division_order"),
    ("families", "family"),
    ("genera", "genus"),
)

FileWriter = Callable[[Any, Path, str], Any]


def safe_query_name(query: str) -> str:
    """Make a search query usable as a file name."""
    return re.sub(r"\s+", "_", query).replace("/", "_")


def enriched_suffix(enrichment: bool) -> str:
    return "_enriched" if enrichment else ""


class FetcherService:
    """
    Application service for fetching Trefle data into local files.

    Fetches are strictly sequential. The rate limiter is awaited between
    requests and is the only place the service yields control.
    """

    def __init__(
        self,
        api_client: Optional[TrefleAPIClient],
        rate_limiter: RateLimiter,
        data_dir: Optional[Path] = None,
        file_writer: FileWriter = write_to_file,
        config: Settings = settings,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            api_client: Trefle client; may be None for dry runs
            rate_limiter: Pause between outbound requests
            data_dir: Output root; defaults to config.data_dir
            file_writer: Callable(data, filepath, file_format)
            config: Batch sizes and limits
            logger: Logger for the fetch narrative
        """
        self.api_client = api_client
        self.rate_limiter = rate_limiter
        self.data_dir = Path(data_dir or config.data_dir)
        self.file_writer = file_writer
        self.config = config
        self.logger = logger or module_logger

    @property
    def trefle_dir(self) -> Path:
        return self.data_dir / "trefle"

    def _banner(self, *lines: str) -> None:
        self.logger.info(BANNER)
        for line in lines:
            self.logger.info(line)
        self.logger.info(BANNER)

    async def _pause(self) -> None:
        await self.rate_limiter.suspend()

    def _require_client(self) -> TrefleAPIClient:
        if self.api_client is None:
            raise ValueError("An API client is required outside of dry runs")
        return self.api_client

    @staticmethod
    def _for_format(data: Any, file_format: str) -> Any:
        # CSV needs a list of rows; a single record becomes a one-row file
        if file_format == "csv" and isinstance(data, Mapping):
            return [data]
        return data

    # ==================== ENRICHMENT ====================

    async def enrich_plants(self, plants: Sequence[Any]) -> List[Any]:
        """
        Fetch the detail record of each plant and flatten it with the list record.

        A plant whose detail fetch fails, or returns no data, is kept as the
        original list record. Plants without an ID are skipped. The rate
        limiter runs between detail fetches, not after the last one.

        Args:
            plants: Plant records from a list or search endpoint

        Returns:
            Flattened records (or fallbacks) in the original order
        """
        if not plants:
            return []

        api_client = self._require_client()
        enriched: List[Any] = []
        total = len(plants)
        fetched_any = False

        for index, plant in enumerate(plants, start=1):
            plant_id = plant.get("id") if isinstance(plant, Mapping) else None
            if not plant_id:
                self.logger.warning(f"  Plant {index}/{total} has no ID, skipping")
                continue

            if fetched_any:
                await self._pause()
            fetched_any = True

            try:
                self.logger.info(f"  Fetching details for plant {index}/{total} (ID: {plant_id})...")
                detailed = await api_client.get_plant(plant_id)
                detail_data = detailed.get("data") if isinstance(detailed, Mapping) else None

                if detail_data:
                    enriched.append(flatten_plant_data(
                        plant, detail_data, max_synonyms=self.config.max_synonyms
                    ))
                    self.logger.info(
                        f"    Enriched data for {plant.get('scientific_name') or 'unknown'}"
                    )
                else:
                    self.logger.warning("    No detailed data returned, using partial data")
                    enriched.append(plant)

            except Exception as e:
                self.logger.error(f"    Error fetching details for plant {plant_id}: {str(e)}")
                self.logger.info("    Including partial data from paginated list")
                enriched.append(plant)

        return enriched

    # ==================== PLANTS (BATCHED) ====================

    async def fetch_plants(
        self,
        pages: Optional[int] = None,
        start_page: int = 1,
        enrichment: bool = False,
        file_format: str = "json",
        dry_run: bool = False,
    ) -> List[Batch]:
        """
        Fetch plant pages and write them in batches of consecutive pages.

        A batch holds ``plants_batch_size`` pages (``enriched_batch_size``
        with enrichment). A partial batch is still written when the page
        limit is reached, the pages run out, or a page fetch fails. A failed
        page ends the walk.

        Args:
            pages: Maximum number of pages (None for all)
            start_page: First page to fetch
            enrichment: Fetch and flatten detail records for every plant
            file_format: 'json', 'csv' or 'json.gz'
            dry_run: Log the plan without fetching or writing

        Returns:
            The batches that were written (or would be, for a dry run)
        """
        plants_dir = self.trefle_dir / "plants"
        extension = get_file_extension(file_format)
        batch_size = self.config.enriched_batch_size if enrichment else self.config.plants_batch_size

        self.logger.info(BANNER)
        self.logger.info(f"Fetching plants ({'enriched' if enrichment else 'paginated'})...")
        if enrichment:
            self.logger.info("Enrichment enabled: Fetching full details for each plant")
        self.logger.info(f"Output format: {file_format}")
        self.logger.info(BANNER)

        if dry_run:
            return await self._simulate_plant_batches(
                pages, start_page, enrichment, batch_size, plants_dir, extension
            )

        api_client = self._require_client()
        written: List[Batch] = []

        async def write_batch(batch: Batch) -> None:
            if not batch.records:
                self.logger.warning(
                    f"Batch (pages {batch.start_page}-{batch.end_page}) has no records, not saved"
                )
                return
            filepath = plants_dir / batch.filename(enrichment, extension)
            self.file_writer(batch.records, filepath, file_format)
            written.append(batch)
            self.logger.info(
                f"Saved batch (pages {batch.start_page}-{batch.end_page}) "
                f"with {len(batch.records)} plants to {filepath}"
            )

        async def fetch_page(page: int) -> Dict[str, Any]:
            self.logger.info(f"Fetching page {page}...")
            return await api_client.get_plants(page=page)

        accumulator = BatchAccumulator(batch_size, start_page=start_page, on_flush=write_batch)
        walker = PaginationWalker(
            fetch_page,
            max_pages=pages,
            start_page=start_page,
            rate_limiter=self.rate_limiter,
        )

        try:
            async for page_number, response in walker.pages():
                page_plants = response.data
                if enrichment:
                    self.logger.info(f"Fetched page {page_number} ({len(page_plants)} plants)")
                    records = await self.enrich_plants(page_plants)
                else:
                    records = trim_plant_synonyms(page_plants, self.config.max_synonyms)
                    self.logger.info(f"Fetched page {page_number} ({len(records)} plants)")
                await accumulator.add_page(page_number, records)

        except (ExternalAPIError, ValidationError) as e:
            self.logger.error(f"Error fetching page {walker.current_page}: {str(e)}")
            await accumulator.flush()

        else:
            if walker.stop_reason == StopReason.PAGE_LIMIT:
                self.logger.info(f"Reached page limit ({pages}). Stopping.")
            elif walker.stop_reason == StopReason.EMPTY_PAGE:
                self.logger.warning("No data returned for this page")
            else:
                self.logger.info("No more pages available.")
            await accumulator.flush()

        self.logger.info(f"Completed: Fetched {walker.pages_fetched} page(s) of plants")
        return written

    async def _simulate_plant_batches(
        self,
        pages: Optional[int],
        start_page: int,
        enrichment: bool,
        batch_size: int,
        plants_dir: Path,
        extension: str,
    ) -> List[Batch]:
        simulated: List[Batch] = []
        preview = self.config.dry_run_page_preview
        page_count = min(pages, preview) if pages else preview

        async def log_batch(batch: Batch) -> None:
            simulated.append(batch)
            self.logger.info(
                f"[DRY RUN] Would write batch: {plants_dir / batch.filename(enrichment, extension)}"
            )

        accumulator = BatchAccumulator(batch_size, start_page=start_page, on_flush=log_batch)
        for page_number in range(start_page, start_page + page_count):
            self.logger.info(f"[DRY RUN] Would fetch plants page {page_number}")
            if enrichment:
                self.logger.info("[DRY RUN] Would enrich data for plants on this page")
            await accumulator.add_page(page_number, [])
        await accumulator.flush()

        if not pages or pages > preview:
            self.logger.info(
                f"[DRY RUN] (showing first {page_count} pages only)"
            )
        self.logger.info(f"Completed: Simulated {page_count} page(s) of plants")
        return simulated

    # ==================== SEARCH ====================

    async def fetch_search_queries(
        self,
        queries: Iterable[str],
        enrichment: bool = False,
        file_format: str = "json",
        dry_run: bool = False,
    ) -> Dict[str, Path]:
        """
        Run each plant search (first page) and save the results.

        Returns:
            Mapping of query to the file written
        """
        queries = list(queries or [])
        if not queries:
            return {}

        search_dir = self.trefle_dir / "search"
        extension = get_file_extension(file_format)
        suffix = enriched_suffix(enrichment)
        saved: Dict[str, Path] = {}

        self.logger.info(BANNER)
        self.logger.info(f"Executing search queries ({'enriched' if enrichment else 'basic'})...")
        if enrichment:
            self.logger.info("Enrichment enabled: Fetching full details for each plant")
        self.logger.info(f"Output format: {file_format}")
        self.logger.info(BANNER)

        for query in queries:
            self.logger.info(f"Searching for: '{query}'")
            filepath = search_dir / f"{safe_query_name(query)}_results{suffix}{extension}"

            if dry_run:
                self.logger.info(f"[DRY RUN] Would search for '{query}'")
                if enrichment:
                    self.logger.info("[DRY RUN] Would enrich search results")
                self.logger.info(f"[DRY RUN] Would save to: {filepath}")
                continue

            try:
                response = PageResponse.from_payload(
                    await self._require_client().search_plants(query, page=1)
                )
                if response.data:
                    total = response.total if response.total is not None else "unknown"
                    self.logger.info(
                        f"Found {len(response.data)} results (page 1 of {total} total)"
                    )
                    data_to_save = response.data
                    if enrichment:
                        data_to_save = await self.enrich_plants(response.data)

                    self.file_writer(data_to_save, filepath, file_format)
                    saved[query] = filepath
                    self.logger.info(f"  Saved to {filepath}")
                else:
                    self.logger.warning("No results found")

            except (ExternalAPIError, ValidationError, ValueError, OSError) as e:
                self.logger.error(f"Error searching for '{query}': {str(e)}")

            await self._pause()

        self.logger.info(f"Completed: Executed {len(queries)} search(es)")
        return saved

    # ==================== PLANTS BY ID ====================

    async def fetch_plants_by_id(
        self,
        plant_ids: Iterable[Any],
        enrichment: bool = False,
        file_format: str = "json",
        dry_run: bool = False,
    ) -> Dict[Any, Path]:
        """
        Fetch plants by ID and save each to its own file.

        With enrichment the detail record is flattened against itself;
        otherwise the full response is saved.

        Returns:
            Mapping of plant ID to the file written
        """
        plant_ids = list(plant_ids or [])
        if not plant_ids:
            return {}

        plants_dir = self.trefle_dir / "plants_by_id"
        extension = get_file_extension(file_format)
        suffix = enriched_suffix(enrichment)
        saved: Dict[Any, Path] = {}

        self.logger.info(BANNER)
        self.logger.info(f"Fetching plants by ID ({'enriched' if enrichment else 'detailed'})...")
        if enrichment:
            self.logger.info("Enrichment enabled: Flattening plant data structure")
        self.logger.info(f"Output format: {file_format}")
        self.logger.info(BANNER)

        for plant_id in plant_ids:
            self.logger.info(f"Fetching plant ID: {plant_id}")

            if dry_run:
                self.logger.info(f"[DRY RUN] Would fetch plant {plant_id}")
                if enrichment:
                    self.logger.info("[DRY RUN] Would flatten plant data")
                self.logger.info(
                    f"[DRY RUN] Would save to: {plants_dir}/{{slug}}_{plant_id}{suffix}{extension}"
                )
                continue

            try:
                result = await self._require_client().get_plant(plant_id)
                plant_data = result.get("data") if isinstance(result, Mapping) else None

                if plant_data:
                    slug = plant_data.get("slug") or f"plant_{plant_id}"
                    self.logger.info(
                        f"Fetched: {plant_data.get('common_name') or 'N/A'} "
                        f"({plant_data.get('scientific_name') or 'N/A'})"
                    )

                    if enrichment:
                        data_to_save = flatten_plant_data(
                            plant_data, plant_data, max_synonyms=self.config.max_synonyms
                        )
                    elif file_format == "csv":
                        data_to_save = plant_data
                    else:
                        data_to_save = result

                    filepath = plants_dir / f"{slug}_{plant_id}{suffix}{extension}"
                    self.file_writer(self._for_format(data_to_save, file_format), filepath, file_format)
                    saved[plant_id] = filepath
                    self.logger.info(f"  Saved to {filepath}")
                else:
                    self.logger.warning(f"No data returned for plant ID {plant_id}")

            except (ExternalAPIError, ValueError, OSError) as e:
                self.logger.error(f"Error fetching plant {plant_id}: {str(e)}")

            await self._pause()

        self.logger.info(f"Completed: Fetched {len(plant_ids)} plant(s) by ID")
        return saved

    # ==================== SINGLE ENDPOINTS ====================

    async def call_and_save(
        self,
        call: Callable[[], Awaitable[Any]],
        filepath: Path,
        file_format: str = "json",
        continue_on_error: bool = True,
    ) -> CallResult:
        """
        Call an API method and write its data to a file.

        The response's ``data`` is written when present, otherwise the whole
        response. Errors are logged and reported in the result, or re-raised
        when ``continue_on_error`` is False.

        Args:
            call: Zero-argument coroutine function performing the request
            filepath: Destination file
            file_format: Output format
            continue_on_error: Swallow and report errors instead of raising

        Returns:
            CallResult describing the outcome
        """
        try:
            result = await call()
            if result is None:
                return CallResult(success=True)

            data = result
            if isinstance(result, Mapping) and result.get("data") is not None:
                data = result["data"]

            self.file_writer(self._for_format(data, file_format), filepath, file_format)
            return CallResult(success=True, filepath=str(filepath))

        except ExternalAPIError as e:
            self.logger.warning(f"HTTP Error in API call: {e.message}")
            if e.status_code == 502:
                self.logger.warning(
                    "  -> Server temporarily unavailable (502 Bad Gateway). Continuing with next request."
                )
            elif e.status_code == 429:
                self.logger.warning(
                    "  -> Rate limit exceeded (429). Consider adding longer delays between requests."
                )
            elif e.status_code == 503:
                self.logger.warning("  -> Service unavailable (503). Server may be overloaded.")
            elif e.status_code:
                self.logger.warning(f"  -> HTTP {e.status_code} error occurred.")

            if not continue_on_error:
                raise
            return CallResult(
                success=False,
                error=e.message,
                error_type="HTTPError",
                status_code=e.status_code,
            )

        except (ValueError, OSError) as e:
            error_type = type(e).__name__
            self.logger.error(f"{error_type} in API call: {str(e)}")
            if not continue_on_error:
                raise
            return CallResult(success=False, error=str(e), error_type=error_type)

    async def _fetch_and_save(
        self,
        title: str,
        call: Callable[[], Awaitable[Any]],
        filepath: Path,
        file_format: str,
        dry_run: bool,
    ) -> Optional[CallResult]:
        self._banner(f"Fetching {title}...")
        if dry_run:
            self.logger.info(f"[DRY RUN] Would fetch {title} to: {filepath}")
            return None

        outcome = await self.call_and_save(call, filepath, file_format)
        if outcome.success:
            self.logger.info(f"Saved {title} to {filepath}")
        else:
            self.logger.error(f"Error fetching {title}: {outcome.error}")
        await self._pause()
        return outcome

    def _list_call(self, method_name: str, pages: Optional[int], **kwargs: Any):
        async def call():
            return await self._require_client().get_all_pages(
                method_name, max_pages=pages or 1, **kwargs
            )
        return call

    def _single_call(self, method_name: str, *args: Any):
        async def call():
            return await getattr(self._require_client(), method_name)(*args)
        return call

    async def fetch_genus_list(
        self,
        pages: Optional[int] = None,
        file_format: str = "json",
        dry_run: bool = False,
    ) -> Optional[CallResult]:
        """Save the genera list as single reference data."""
        filepath = self.trefle_dir / "single" / f"genus_list{get_file_extension(file_format)}"
        return await self._fetch_and_save(
            "genus list", self._list_call("get_genera", pages), filepath, file_format, dry_run
        )

    async def fetch_taxonomy(
        self,
        lists: Iterable[str] = (),
        singles: Optional[Mapping[str, Any]] = None,
        pages: Optional[int] = None,
        file_format: str = "json",
        dry_run: bool = False,
    ) -> Dict[str, CallResult]:
        """
        Fetch taxonomy lists and single taxa.

        Args:
            lists: List keys to fetch ('kingdoms', 'division_classes', ...)
            singles: Single keys to IDs ({'kingdom': 'plantae', 'genus': 123})
            pages: Pages per list (default 1)

        Returns:
            Outcome per saved file stem
        """
        taxonomy_dir = self.trefle_dir / "taxonomy"
        extension = get_file_extension(file_format)
        lists = set(lists or ())
        singles = singles or {}
        outcomes: Dict[str, CallResult] = {}

        for list_key, single_key in TAXONOMY_RESOURCES:
            if list_key in lists:
                outcome = await self._fetch_and_save(
                    list_key.replace("_", " "),
                    self._list_call(f"get_{list_key}", pages),
                    taxonomy_dir / f"{list_key}{extension}",
                    file_format,
                    dry_run,
                )
                if outcome is not None:
                    outcomes[list_key] = outcome

            identifier = singles.get(single_key)
            if identifier:
                stem = f"{single_key}_{identifier}"
                outcome = await self._fetch_and_save(
                    f"{single_key.replace('_', ' ')} {identifier}",
                    self._single_call(f"get_{single_key}", identifier),
                    taxonomy_dir / f"{stem}{extension}",
                    file_format,
                    dry_run,
                )
                if outcome is not None:
                    outcomes[stem] = outcome

        return outcomes

    async def fetch_species(
        self,
        species_list: bool = False,
        species_id: Any = None,
        search_queries: Iterable[str] = (),
        pages: Optional[int] = None,
        file_format: str = "json",
        dry_run: bool = False,
    ) -> Dict[str, CallResult]:
        """Fetch the species list, a single species, and species searches."""
        species_dir = self.trefle_dir / "species"
        extension = get_file_extension(file_format)
        outcomes: Dict[str, CallResult] = {}

        if species_list:
            outcome = await self._fetch_and_save(
                "species list",
                self._list_call("get_species_list", pages),
                species_dir / f"species_list{extension}",
                file_format,
                dry_run,
            )
            if outcome is not None:
                outcomes["species_list"] = outcome

        if species_id:
            outcome = await self._fetch_and_save(
                f"species {species_id}",
                self._single_call("get_species", species_id),
                species_dir / f"species_{species_id}{extension}",
                file_format,
                dry_run,
            )
            if outcome is not None:
                outcomes[f"species_{species_id}"] = outcome

        for query in search_queries or ():
            stem = f"{safe_query_name(query)}_results"
            outcome = await self._fetch_and_save(
                f"species search results for '{query}'",
                self._single_call("search_species", query, 1),
                species_dir / "search" / f"{stem}{extension}",
                file_format,
                dry_run,
            )
            if outcome is not None:
                outcomes[stem] = outcome

        return outcomes

    async def fetch_distributions_and_corrections(
        self,
        zones: bool = False,
        zone: Any = None,
        zone_plants: Optional[str] = None,
        corrections: bool = False,
        correction: Any = None,
        pages: Optional[int] = None,
        file_format: str = "json",
        dry_run: bool = False,
    ) -> Dict[str, CallResult]:
        """Fetch distribution zones, plants of a zone, and corrections."""
        distributions_dir = self.trefle_dir / "distributions"
        corrections_dir = self.trefle_dir / "corrections"
        extension = get_file_extension(file_format)
        outcomes: Dict[str, CallResult] = {}

        steps = []
        if zones:
            steps.append((
                "zones", "distribution zones",
                self._list_call("get_distributions", pages),
                distributions_dir / f"zones{extension}",
            ))
        if zone:
            steps.append((
                f"zone_{zone}", f"distribution zone {zone}",
                self._single_call("get_distribution", zone),
                distributions_dir / f"zone_{zone}{extension}",
            ))
        if zone_plants:
            steps.append((
                f"{zone_plants}_plants", f"plants for zone {zone_plants}",
                self._list_call("get_plants_by_zone", pages, zone_id=zone_plants),
                distributions_dir / f"{zone_plants}_plants{extension}",
            ))
        if corrections:
            steps.append((
                "corrections", "corrections",
                self._list_call("get_corrections", pages),
                corrections_dir / f"corrections{extension}",
            ))
        if correction:
            steps.append((
                f"correction_{correction}", f"correction {correction}",
                self._single_call("get_correction", correction),
                corrections_dir / f"correction_{correction}{extension}",
            ))

        for key, title, call, filepath in steps:
            outcome = await self._fetch_and_save(title, call, filepath, file_format, dry_run)
            if outcome is not None:
                outcomes[key] = outcome

        return outcomes

    async def close(self) -> None:
        """Close the API client, if any."""
        if self.api_client is not None:
            await self.api_client.close()
