"""
Application service: walking a paginated Trefle endpoint.
"""
import logging
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Tuple

from trefle_fetcher.domain.models import PageResponse
from trefle_fetcher.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int], Awaitable[Any]]


class StopReason(str, Enum):
    """Why a walk ended."""
    PAGE_LIMIT = "page_limit"
    LAST_PAGE = "last_page"
    EMPTY_PAGE = "empty_page"


class PaginationWalker:
    """
    Drives a page fetcher from ``start_page`` until the pages run out.

    A walk stops when ``max_pages`` pages have been fetched, when a page has
    no ``links.next``, or when a page comes back without data. Fetch errors
    are not retried and propagate to the caller. Between two successful
    fetches the walker suspends on the rate limiter; it does not suspend
    after the last page.

    Each call to ``pages()`` starts a fresh walk.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        max_pages: Optional[int] = None,
        start_page: int = 1,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        if max_pages is not None and max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        if start_page < 1:
            raise ValueError("start_page must be at least 1")

        self.fetch_page = fetch_page
        self.max_pages = max_pages
        self.start_page = start_page
        self.rate_limiter = rate_limiter

        self.current_page: Optional[int] = None
        self.pages_fetched = 0
        self.stop_reason: Optional[StopReason] = None

    def _limit_reached(self) -> bool:
        return self.max_pages is not None and self.pages_fetched >= self.max_pages

    async def pages(self) -> AsyncIterator[Tuple[int, PageResponse]]:
        """Yield ``(page_number, page)`` for each page that carries data."""
        self.pages_fetched = 0
        self.stop_reason = None
        page = self.start_page

        while True:
            if self._limit_reached():
                self.stop_reason = StopReason.PAGE_LIMIT
                return

            self.current_page = page
            payload = await self.fetch_page(page)
            response = (
                payload if isinstance(payload, PageResponse)
                else PageResponse.from_payload(payload)
            )

            if not response.data:
                self.stop_reason = StopReason.EMPTY_PAGE
                return

            self.pages_fetched += 1
            yield page, response

            if not response.has_next:
                self.stop_reason = StopReason.LAST_PAGE
                return
            if self._limit_reached():
                self.stop_reason = StopReason.PAGE_LIMIT
                return

            if self.rate_limiter is not None:
                await self.rate_limiter.suspend()
            page += 1

    async def collect(self) -> List[Any]:
        """Run a full walk and return every item in page order."""
        items: List[Any] = []
        async for _, response in self.pages():
            items.extend(response.data)

        logger.info(
            f"Fetched {len(items)} total records across {self.pages_fetched} pages"
        )
        return items
