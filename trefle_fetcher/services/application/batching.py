"""
Application service: grouping consecutive pages of records into batches.
"""
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from trefle_fetcher.domain.models import Batch

logger = logging.getLogger(__name__)

BatchHandler = Callable[[Batch], Awaitable[None]]


class BatchAccumulator:
    """
    Collects the records of consecutive pages until a batch is full.

    A batch closes after ``batch_size`` pages, or when the caller calls
    ``flush()`` at a boundary (page limit, last page, fetch error). Each
    closed batch goes to ``on_flush`` once, and the next batch starts on the
    page after it. Owned by a single fetch loop.
    """

    def __init__(
        self,
        batch_size: int,
        start_page: int = 1,
        on_flush: Optional[BatchHandler] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.batch_size = batch_size
        self.on_flush = on_flush
        self.start_page = start_page
        self.records: List[Any] = []
        self.pages_in_batch = 0
        self.last_page: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.pages_in_batch == 0

    async def add_page(self, page_number: int, records: Iterable[Any]) -> Optional[Batch]:
        """
        Append one page of records.

        Returns:
            The flushed batch if this page filled it, else None
        """
        self.records.extend(records)
        self.pages_in_batch += 1
        self.last_page = page_number

        if self.pages_in_batch >= self.batch_size:
            return await self.flush()
        return None

    async def flush(self) -> Optional[Batch]:
        """Close the open batch, even if partial. No-op when no page is open."""
        if self.is_empty:
            return None

        batch = Batch(
            start_page=self.start_page,
            end_page=self.last_page,
            records=self.records,
        )

        self.start_page = self.last_page + 1
        self.records = []
        self.pages_in_batch = 0

        logger.debug(
            f"Closed batch pages {batch.start_page}-{batch.end_page} "
            f"({len(batch.records)} records)"
        )
        if self.on_flush is not None:
            await self.on_flush(batch)
        return batch
