"""GitHub REST API client for repository release listings."""
import asyncio
import logging
from typing import Mapping, Optional

import aiohttp

from reposcoop.domain.errors import (
    RateLimitError,
    RemoteAPIError,
    RepositoryNotFoundError,
)
from reposcoop.domain.models import PageMetadata, RateLimit, ReleasePage, ReleaseRecord
from reposcoop.domain.release_source_interface import IReleaseSource


logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "RepoScoop"


def _header_int(headers: Mapping[str, str], name: str, default: int) -> int:
    try:
        return int(headers.get(name, default))
    except (TypeError, ValueError):
        return default


class GitHubReleaseClient(IReleaseSource):
    """GitHub REST client fetching one page of releases per call.

    Implements the IReleaseSource port. Knows nothing about retries or
    pagination order; it only translates HTTP responses into domain pages
    and domain errors.
    """

    def __init__(
        self,
        api_url: str = GITHUB_API_URL,
        per_page: int = 100,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """Initialize GitHub client.

        Args:
            api_url: Base URL of the REST API
            per_page: Number of releases per page (max 100)
            timeout: Total request timeout in seconds
            session: Existing session to use; the client will not close it
        """
        self._api_url = api_url.rstrip("/")
        self._per_page = max(1, min(per_page, 100))  # GitHub max is 100
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def _init_session(self) -> aiohttp.ClientSession:
        """Create the HTTP session on first use."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    "Accept": "application/vnd.github.v3+json",
                    "User-Agent": USER_AGENT,
                },
                timeout=self._timeout
            )
            self._owns_session = True
        return self._session

    @staticmethod
    def _extract_rate_limit(headers: Mapping[str, str]) -> RateLimit:
        return RateLimit(
            limit=_header_int(headers, "x-ratelimit-limit", 60),
            remaining=_header_int(headers, "x-ratelimit-remaining", 0),
            reset_epoch=_header_int(headers, "x-ratelimit-reset", 0),
        )

    @staticmethod
    def _extract_last_page(response: aiohttp.ClientResponse) -> int:
        """Read the last page number from the ``rel="last"`` Link relation.

        The last page omits that relation, as does a single-page listing, so
        a missing relation means page 1.
        """
        last = response.links.get("last")
        if not last:
            return 1
        try:
            return int(last["url"].query.get("page", 1))
        except (KeyError, ValueError):
            return 1

    async def fetch_page(self, owner: str, repo: str, page: int = 1) -> ReleasePage:
        """Fetch one page of releases.

        Args:
            owner: Repository owner
            repo: Repository name
            page: 1-based page number

        Returns:
            ReleasePage with the page's records and metadata

        Raises:
            RepositoryNotFoundError: On 404
            RateLimitError: On 403 with no remaining quota
            RemoteAPIError: On any other non-success status, or when the
                request fails in transport (status 0)
        """
        session = await self._init_session()
        url = f"{self._api_url}/repos/{owner}/{repo}/releases"
        params = {"page": page, "per_page": self._per_page}

        try:
            return await self._request_page(session, url, params, owner, repo, page)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Request for {owner}/{repo} page {page} failed: {e!r}")
            raise RemoteAPIError(0, str(e) or type(e).__name__) from e

    async def _request_page(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: Mapping[str, int],
        owner: str,
        repo: str,
        page: int
    ) -> ReleasePage:
        async with session.get(url, params=params) as response:
            rate_limit = self._extract_rate_limit(response.headers)

            if not response.ok:
                if (response.status == 403
                        and response.headers.get("x-ratelimit-remaining") == "0"):
                    logger.warning(
                        f"Rate limit exhausted fetching {owner}/{repo} page {page}, "
                        f"resets at {rate_limit.reset_at}"
                    )
                    raise RateLimitError(rate_limit.reset_at)
                if response.status == 404:
                    raise RepositoryNotFoundError(owner, repo)
                logger.error(
                    f"GitHub API returned {response.status} for {owner}/{repo} page {page}"
                )
                raise RemoteAPIError(response.status, response.reason)

            payload = await response.json(content_type=None)
            if not isinstance(payload, list):
                raise RemoteAPIError(response.status, "Unexpected response body")

            metadata = PageMetadata(
                rate_limit=rate_limit,
                last_page=self._extract_last_page(response),
                total_count=len(payload)
            )

        offset = (page - 1) * self._per_page
        records = tuple(
            ReleaseRecord.from_api(item, offset + index)
            for index, item in enumerate(payload)
        )

        logger.info(
            f"Fetched page {page}/{metadata.last_page} of {owner}/{repo} "
            f"({len(records)} releases). Rate limit remaining: {rate_limit.remaining}"
        )
        return ReleasePage(page=page, records=records, metadata=metadata)

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
