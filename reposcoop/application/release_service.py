"""Release service orchestrating fetching and grouping of a repository's releases."""
import asyncio
import logging
import time
from typing import List, Optional

import aiohttp

from reposcoop.application.release_fetcher import ReleaseFetcher, merge_page_metadata
from reposcoop.domain.errors import ReleaseFetchError
from reposcoop.domain.models import GroupedResult, ReleaseHistory, ReleasePage, ReleaseRecord
from reposcoop.domain.release_grouping import group_releases_by_package, sort_package_groups


logger = logging.getLogger(__name__)


class ReleaseService:
    """Application service for loading a repository's grouped release history.

    Coordinates the release fetcher and the grouping rules; keeps whatever
    was fetched when a later page fails.
    """

    def __init__(self, fetcher: ReleaseFetcher):
        """Initialize release service.

        Args:
            fetcher: Paginated release fetcher
        """
        self._fetcher = fetcher

    async def load_release_history(
        self,
        owner: str,
        repo: str,
        cancel_event: Optional[asyncio.Event] = None
    ) -> ReleaseHistory:
        """Fetch and group all releases of a repository.

        A failure on the first page is fatal and raised. A failure on a
        later page is recorded on the returned history, which still holds
        and groups every release fetched before it.

        Args:
            owner: Repository owner
            repo: Repository name
            cancel_event: When set, aborts pending retry waits

        Returns:
            ReleaseHistory with records, grouped result and metadata

        Raises:
            ReleaseFetchError: When nothing could be fetched
            aiohttp.ClientError: When the first page fails in transport
            asyncio.TimeoutError: When the first page times out
        """
        start_time = time.time()
        pages: List[ReleasePage] = []
        error: Optional[Exception] = None

        logger.info(f"Loading release history for {owner}/{repo}")

        try:
            async for page in self._fetcher.iter_pages(owner, repo, cancel_event):
                pages.append(page)
        except (ReleaseFetchError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            if not pages:
                logger.error(f"Could not load releases for {owner}/{repo}: {e}")
                raise
            logger.error(
                f"Stopped loading {owner}/{repo} after {len(pages)} page(s): {e}"
            )
            error = e

        pages.sort(key=lambda page: page.page)
        records: List[ReleaseRecord] = [record for page in pages for record in page.records]
        grouped = group_releases_by_package(records, repo)
        duration = time.time() - start_time

        logger.info(
            f"Loaded {grouped.total_releases} releases of {owner}/{repo} into "
            f"{len(grouped.groups)} group(s) in {duration:.2f} seconds"
        )

        return ReleaseHistory(
            owner=owner,
            repo=repo,
            records=tuple(records),
            grouped=grouped,
            metadata=merge_page_metadata(pages),
            duration_seconds=duration,
            error=error
        )

    @staticmethod
    def regroup(
        history: ReleaseHistory,
        sort_by: str = "name",
        sort_order: str = "asc"
    ) -> GroupedResult:
        """Recompute the grouping of a history and order the groups for display."""
        grouped = group_releases_by_package(history.records, history.repo)
        return GroupedResult(
            groups=sort_package_groups(grouped.groups, sort_by, sort_order),
            total_releases=grouped.total_releases
        )

    async def close(self) -> None:
        """Close connections."""
        await self._fetcher.close()
