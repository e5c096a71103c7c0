"""Paginated retrieval of a repository's complete release history."""
import asyncio
import logging
from typing import AsyncIterator, List, Optional

from reposcoop.domain.models import FetchResult, PageMetadata, ReleasePage, ReleaseRecord
from reposcoop.domain.release_source_interface import IReleaseSource
from reposcoop.infrastructure.retry_policy import RetryPolicy


logger = logging.getLogger(__name__)


def merge_page_metadata(pages: List[ReleasePage]) -> Optional[PageMetadata]:
    """Combine per-page metadata into one summary.

    Keeps the most recent rate-limit snapshot (latest reset window, then
    fewest remaining requests), the highest last-page number seen and the
    number of records fetched.
    """
    if not pages:
        return None
    latest = max(
        (page.metadata.rate_limit for page in pages),
        key=lambda rate_limit: (rate_limit.reset_epoch, -rate_limit.remaining)
    )
    return PageMetadata(
        rate_limit=latest,
        last_page=max(page.metadata.last_page for page in pages),
        total_count=sum(len(page.records) for page in pages)
    )


class ReleaseFetcher:
    """Fetches every page of a repository's releases.

    Page 1 is fetched on its own because only it tells how many pages
    exist; the remaining pages are fetched concurrently. Every page request
    goes through the retry policy.
    """

    def __init__(
        self,
        source: IReleaseSource,
        retry_policy: Optional[RetryPolicy] = None,
        max_concurrency: int = 5
    ):
        """Initialize release fetcher.

        Args:
            source: Release source implementation
            retry_policy: Retry policy applied to every page request
            max_concurrency: Maximum number of pages requested at the same time
        """
        self._source = source
        self._retry_policy = retry_policy or RetryPolicy()
        self._max_concurrency = max(1, max_concurrency)

    async def fetch_page(
        self,
        owner: str,
        repo: str,
        page: int = 1,
        cancel_event: Optional[asyncio.Event] = None
    ) -> ReleasePage:
        """Fetch a single page, retrying according to the policy."""
        return await self._retry_policy.call(
            lambda: self._source.fetch_page(owner, repo, page),
            cancel_event=cancel_event
        )

    async def iter_pages(
        self,
        owner: str,
        repo: str,
        cancel_event: Optional[asyncio.Event] = None
    ) -> AsyncIterator[ReleasePage]:
        """Yield release pages as they arrive.

        Page 1 is always yielded first; pages 2..N follow in completion
        order. If a page ultimately fails, outstanding page requests are
        cancelled and the failure propagates after the pages already
        yielded.

        Args:
            owner: Repository owner
            repo: Repository name
            cancel_event: When set, aborts pending retry waits

        Yields:
            ReleasePage objects
        """
        first_page = await self.fetch_page(owner, repo, 1, cancel_event)
        yield first_page

        last_page = first_page.metadata.last_page
        if last_page <= 1:
            return

        logger.info(f"Fetching pages 2..{last_page} of {owner}/{repo}")
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def fetch_limited(page: int) -> ReleasePage:
            async with semaphore:
                return await self.fetch_page(owner, repo, page, cancel_event)

        tasks = [
            asyncio.ensure_future(fetch_limited(page))
            for page in range(2, last_page + 1)
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def fetch_all(
        self,
        owner: str,
        repo: str,
        cancel_event: Optional[asyncio.Event] = None
    ) -> FetchResult:
        """Fetch every release of a repository.

        Returns:
            FetchResult with records in page order and merged metadata

        Raises:
            ReleaseFetchError: The first failure that exhausted its retries
        """
        pages: List[ReleasePage] = []
        async for page in self.iter_pages(owner, repo, cancel_event):
            pages.append(page)

        pages.sort(key=lambda page: page.page)
        records: List[ReleaseRecord] = []
        for page in pages:
            records.extend(page.records)

        logger.info(f"Fetched {len(records)} releases of {owner}/{repo} in {len(pages)} page(s)")
        return FetchResult(records=tuple(records), metadata=merge_page_metadata(pages))

    async def close(self) -> None:
        """Close the underlying release source."""
        await self._source.close()
