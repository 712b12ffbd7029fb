"""
Command-line entry point for the Trefle data fetcher.

Fetches plant data from the Trefle API and saves it under ``datasets/``:

    datasets/trefle/
        single/          genus_list.json
        plants/          plants_pages_1-10.json, ...
        plants_by_id/    {slug}_{id}.json
        search/          {query}_results.json
        taxonomy/        kingdoms.json, family_{id}.json, ...
        species/         species_list.json, search/{query}_results.json
        distributions/   zones.json, zone_{id}.json
        corrections/     corrections.json, correction_{id}.json

Usage:
    trefle-fetch --all
    trefle-fetch --plants --pages 5
    trefle-fetch --plants-combined --pages 10 --format csv
    trefle-fetch --search rose "coconut palm"
    trefle-fetch --zones --genus-list --dry-run
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from trefle_fetcher.config import configure_logging, settings
from trefle_fetcher.dependencies import get_fetcher_service, reset_api_client
from trefle_fetcher.services.application.fetch_service import BANNER, TAXONOMY_RESOURCES

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130

TAXONOMY_SINGLES = [single for _, single in TAXONOMY_RESOURCES]
TAXONOMY_LISTS = [plural for plural, _ in TAXONOMY_RESOURCES]

SELECTION_FLAGS = (
    ["all", "all_single", "all_plants", "plants", "plants_combined", "search",
     "plant_id", "genus_list", "species", "species_id", "search_species",
     "zones", "zone", "zone_plants", "corrections", "correction"]
    + TAXONOMY_LISTS
    + TAXONOMY_SINGLES
)


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trefle-fetch",
        description="Fetch plant data from Trefle API",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {settings.app_version}")

    category = parser.add_argument_group("categories")
    category.add_argument("--all", action="store_true",
                          help="Fetch all data (reference data + all plant pages)")
    category.add_argument("--all-single", action="store_true",
                          help="Fetch all single-fetch reference data (zones, genus list)")
    category.add_argument("--all-plants", action="store_true",
                          help="Fetch all plant pages (paginated)")

    plants = parser.add_argument_group("plants")
    plants.add_argument("--plants", action="store_true",
                        help="Fetch plants (use --pages to limit)")
    plants.add_argument("--plants-combined", action="store_true",
                        help="Fetch plants with full details combined (batched in 5-page files)")
    plants.add_argument("--search", nargs="+", metavar="QUERY",
                        help="Search plants by query (can specify multiple)")
    plants.add_argument("--plant-id", nargs="+", type=int, metavar="ID", action="extend",
                        help="Fetch specific plant by ID (can specify multiple)")
    plants.add_argument("--genus-list", action="store_true",
                        help="Fetch the genus list as reference data")

    taxonomy = parser.add_argument_group("taxonomy")
    for plural, single in TAXONOMY_RESOURCES:
        plural_label = plural.replace("_", " ")
        single_label = single.replace("_", " ")
        taxonomy.add_argument(f"--{plural.replace('_', '-')}", action="store_true",
                              help=f"Fetch all {plural_label}")
        taxonomy.add_argument(f"--{single.replace('_', '-')}", metavar="ID",
                              help=f"Fetch specific {single_label} by ID or slug")

    species = parser.add_argument_group("species")
    species.add_argument("--species", action="store_true",
                         help="Fetch species list (use --pages to limit)")
    species.add_argument("--species-id", metavar="ID",
                         help="Fetch specific species by ID or slug")
    species.add_argument("--search-species", nargs="+", metavar="QUERY",
                         help="Search species by query (can specify multiple)")

    distributions = parser.add_argument_group("distributions and corrections")
    distributions.add_argument("--zones", action="store_true",
                               help="Fetch all distribution zones")
    distributions.add_argument("--zone", metavar="ID",
                               help="Fetch specific distribution zone by ID or slug")
    distributions.add_argument("--zone-plants", metavar="ZONE",
                               help="Fetch plants of a distribution zone (use --pages to limit)")
    distributions.add_argument("--corrections", action="store_true",
                               help="Fetch all corrections")
    distributions.add_argument("--correction", metavar="ID",
                               help="Fetch specific correction by ID")

    paging = parser.add_argument_group("pagination")
    paging.add_argument("--pages", type=positive_int,
                        help="Number of pages to fetch (default: all plant pages, 1 page for lists)")
    paging.add_argument("--start-page", type=positive_int, default=1,
                        help="Starting page number (default: 1)")

    other = parser.add_argument_group("other options")
    other.add_argument("--enrichment", action="store_true",
                       help="Enrich plant data by fetching full details for each plant")
    other.add_argument("--format", dest="file_format", default="json",
                       choices=["json", "csv", "json.gz"],
                       help="Output file format: json (default), csv, or json.gz (compressed)")
    other.add_argument("--dry-run", action="store_true",
                       help="Preview operations without fetching data")
    other.add_argument("--log-level", default=settings.log_level,
                       help="Set logging level (DEBUG, INFO, WARNING, ERROR)")
    return parser


def has_selection(args: argparse.Namespace) -> bool:
    return any(getattr(args, flag, None) for flag in SELECTION_FLAGS)


def expand_categories(args: argparse.Namespace) -> argparse.Namespace:
    """Resolve the shortcut flags into individual selections."""
    if args.all:
        args.all_single = True
        args.all_plants = True
    if args.all_single:
        args.zones = True
        args.genus_list = True
    if args.all_plants:
        args.plants = True
    if args.plants_combined:
        args.plants = True
        args.enrichment = True
    return args


async def run(args: argparse.Namespace) -> None:
    """Run every selected fetch in a fixed order."""
    logger.info("Initializing Trefle API...")
    service = get_fetcher_service(dry_run=args.dry_run)
    logger.info("API initialized successfully")
    logger.info("")

    try:
        if args.genus_list:
            await service.fetch_genus_list(args.pages, args.file_format, args.dry_run)

        if args.plants:
            await service.fetch_plants(
                pages=args.pages,
                start_page=args.start_page,
                enrichment=args.enrichment,
                file_format=args.file_format,
                dry_run=args.dry_run,
            )

        await service.fetch_search_queries(
            args.search or [], args.enrichment, args.file_format, args.dry_run
        )
        await service.fetch_plants_by_id(
            args.plant_id or [], args.enrichment, args.file_format, args.dry_run
        )

        await service.fetch_taxonomy(
            lists=[plural for plural in TAXONOMY_LISTS if getattr(args, plural)],
            singles={
                single: getattr(args, single)
                for single in TAXONOMY_SINGLES
                if getattr(args, single)
            },
            pages=args.pages,
            file_format=args.file_format,
            dry_run=args.dry_run,
        )
        await service.fetch_species(
            species_list=args.species,
            species_id=args.species_id,
            search_queries=args.search_species or [],
            pages=args.pages,
            file_format=args.file_format,
            dry_run=args.dry_run,
        )
        await service.fetch_distributions_and_corrections(
            zones=args.zones,
            zone=args.zone,
            zone_plants=args.zone_plants,
            corrections=args.corrections,
            correction=args.correction,
            pages=args.pages,
            file_format=args.file_format,
            dry_run=args.dry_run,
        )
    finally:
        await service.close()
        reset_api_client()

    logger.info(BANNER)
    logger.info("EXECUTION COMPLETE")
    logger.info(BANNER)
    logger.info(f"Data directory: {Path(service.data_dir).resolve()}")
    if not args.dry_run:
        logger.info("Data has been saved to local files.")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments, run the fetch, and return the process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not has_selection(args):
        parser.print_help()
        return EXIT_OK

    configure_logging(args.log_level)
    expand_categories(args)

    logger.info(BANNER)
    logger.info("TREFLE API DATA FETCHER")
    logger.info(BANNER)
    logger.info(f"Dry run: {args.dry_run}")
    logger.info(f"Log level: {args.log_level}")
    if args.pages:
        logger.info(f"Page limit: {args.pages}")
    if args.start_page != 1:
        logger.info(f"Starting page: {args.start_page}")
    logger.info("")

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.warning("Execution interrupted by user (Ctrl+C)")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.error(f"Fatal error: {str(e)}")
        logger.debug("Traceback:", exc_info=True)
        return EXIT_ERROR

    return EXIT_OK


def entrypoint() -> None:
    sys.exit(main())
