"""
Dependency wiring for the fetcher.
"""
import logging
from typing import Optional

from trefle_fetcher.config import settings
from trefle_fetcher.infrastructure.rate_limiter import RateLimiter
from trefle_fetcher.infrastructure.trefle_client import TrefleAPIClient
from trefle_fetcher.services.application.fetch_service import FetcherService


# Singleton instance
_api_client: Optional[TrefleAPIClient] = None


def get_rate_limiter() -> RateLimiter:
    """Rate limiter using the configured delay bounds."""
    return RateLimiter(
        min_delay=settings.rate_limit_min_delay,
        max_delay=settings.rate_limit_max_delay,
    )


def get_api_client(
    rate_limiter: Optional[RateLimiter] = None,
    logger: Optional[logging.Logger] = None,
) -> TrefleAPIClient:
    """
    Get or create the singleton API client instance.

    Raises:
        ValueError: If no API token is configured
    """
    global _api_client
    if _api_client is None:
        _api_client = TrefleAPIClient(rate_limiter=rate_limiter, logger=logger)
    return _api_client


def reset_api_client() -> None:
    """Forget the singleton so the next call builds a fresh client."""
    global _api_client
    _api_client = None


def get_fetcher_service(
    dry_run: bool = False,
    logger: Optional[logging.Logger] = None,
) -> FetcherService:
    """
    Dependency factory for FetcherService.

    Dry runs make no requests, so they get no API client and need no token.
    """
    rate_limiter = get_rate_limiter()
    api_client = None if dry_run else get_api_client(rate_limiter=rate_limiter, logger=logger)
    return FetcherService(
        api_client=api_client,
        rate_limiter=rate_limiter,
        logger=logger,
    )
