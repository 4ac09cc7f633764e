"""
Lazy iteration over paged store reads.

A ``PaginatedReader`` wraps one page-fetching callable and keeps re-issuing it
with the continuation token from the previous page until the store stops
returning one. Pages are only requested when the consumer has drained the
previous page, so memory stays bounded by a single page.
"""
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Sequence

from app.storage.store import AttributeFilter, ContinuationToken, Page, Store

logger = logging.getLogger(__name__)

PageFetcher = Callable[[Optional[ContinuationToken]], Awaitable[Page]]


class PaginatedReader:
    """
    Single-pass, forward-only async iterator over the items of a paged read.

    Any page failure propagates to the consumer as raised by the store
    (``StoreUnavailableError`` for DynamoDB). Items already yielded are not
    retracted.
    """

    def __init__(self, fetch_page: PageFetcher, description: str = "read"):
        self._fetch_page = fetch_page
        self._description = description
        self._started = False
        self.pages_fetched = 0
        self.items_yielded = 0

    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        if self._started:
            raise RuntimeError(f"Paginated {self._description} has already been consumed")
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Dict[str, Any]]:
        token: Optional[ContinuationToken] = None
        while True:
            page = await self._fetch_page(token)
            self.pages_fetched += 1
            for item in page.items:
                self.items_yielded += 1
                yield item
            if not page.next_token:
                break
            token = page.next_token
        logger.debug(
            f"Paginated {self._description} finished: "
            f"{self.items_yielded} items over {self.pages_fetched} pages"
        )


def paginate_query(
    store: Store,
    partition_key: str,
    page_size: Optional[int] = None,
) -> PaginatedReader:
    """All items sharing ``partition_key``."""

    async def fetch(token):
        return await store.query_page(partition_key, start_token=token, limit=page_size)

    return PaginatedReader(fetch, description=f"query of {partition_key}")


def paginate_scan(
    store: Store,
    filters: Sequence[AttributeFilter],
    projection: Optional[Sequence[str]] = None,
    page_size: Optional[int] = None,
) -> PaginatedReader:
    """All items in the table matching every filter."""

    async def fetch(token):
        return await store.scan_page(filters, projection=projection, start_token=token, limit=page_size)

    return PaginatedReader(fetch, description="scan")
