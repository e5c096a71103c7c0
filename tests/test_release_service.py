"""Tests for the release service."""
import asyncio
from datetime import datetime, timezone

import aiohttp
import pytest
from reposcoop.application.release_fetcher import ReleaseFetcher
from reposcoop.application.release_service import ReleaseService
from reposcoop.domain.errors import RateLimitError, RemoteAPIError, RepositoryNotFoundError
from reposcoop.domain.models import PageMetadata, RateLimit, ReleasePage
from reposcoop.domain.release_source_interface import IReleaseSource
from reposcoop.infrastructure.retry_policy import RetryPolicy


async def _no_sleep(seconds):
    return None


class PagedSource(IReleaseSource):
    """Release source serving fixed pages; exceptions are raised as-is."""

    def __init__(self, pages):
        self._pages = pages
        self.closed = False

    async def fetch_page(self, owner, repo, page=1):
        content = self._pages[page]
        if isinstance(content, Exception):
            raise content
        return ReleasePage(
            page=page,
            records=tuple(content),
            metadata=PageMetadata(RateLimit(60, 50, 1700000000), len(self._pages), len(content))
        )

    async def close(self):
        self.closed = True


def _service(pages):
    source = PagedSource(pages)
    fetcher = ReleaseFetcher(source, RetryPolicy(max_attempts=2, sleep=_no_sleep))
    return ReleaseService(fetcher), source


def test_load_release_history(mock_releases):
    """Test a complete history is fetched and grouped by package."""
    service, _ = _service({1: mock_releases[:4], 2: mock_releases[4:]})

    history = asyncio.run(service.load_release_history("test", "repo"))

    assert not history.is_partial
    assert history.full_name == "test/repo"
    assert len(history.records) == 7
    assert history.grouped.total_releases == 7
    assert len(history.grouped.groups) == 6
    assert history.grouped.get_group("repo").release_count == 1
    assert history.metadata.last_page == 2
    assert history.metadata.total_count == 7
    assert history.duration_seconds >= 0


def test_first_page_failure_is_fatal():
    service, _ = _service({1: RepositoryNotFoundError("test", "missing")})

    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(service.load_release_history("test", "missing"))


def test_first_page_rate_limit_is_fatal_after_retries():
    reset = datetime(2020, 1, 1, tzinfo=timezone.utc)
    service, _ = _service({1: RateLimitError(reset)})

    with pytest.raises(RateLimitError):
        asyncio.run(service.load_release_history("test", "repo"))


def test_later_page_failure_keeps_partial_results(mock_releases):
    """Test releases fetched before a failing page are still grouped."""
    error = RemoteAPIError(502, "Bad Gateway")
    service, _ = _service({1: mock_releases[:3], 2: error})

    history = asyncio.run(service.load_release_history("test", "repo"))

    assert history.is_partial
    assert history.error is error
    assert [r.release_id for r in history.records] == [1, 2, 3]
    assert history.grouped.total_releases == 3
    assert [g.name for g in history.grouped.groups] == ["@scope/package-a", "package-b"]


@pytest.mark.parametrize("error", [
    aiohttp.ClientConnectionError("Connection reset by peer"),
    asyncio.TimeoutError(),
])
def test_later_page_transport_failure_keeps_partial_results(mock_releases, error):
    """Test transport errors that escape the source still leave a partial history."""
    service, _ = _service({1: mock_releases[:3], 2: error})

    history = asyncio.run(service.load_release_history("test", "repo"))

    assert history.is_partial
    assert history.error is error
    assert [r.release_id for r in history.records] == [1, 2, 3]
    assert history.grouped.total_releases == 3


def test_first_page_transport_failure_is_raised():
    service, _ = _service({1: aiohttp.ClientConnectionError("refused")})

    with pytest.raises(aiohttp.ClientConnectionError):
        asyncio.run(service.load_release_history("test", "repo"))

def test_regroup_orders_groups(mock_releases):
    service, _ = _service({1: mock_releases})
    history = asyncio.run(service.load_release_history("test", "repo"))

    by_count = ReleaseService.regroup(history, "count", "desc")
    by_name = ReleaseService.regroup(history, "name", "desc")

    assert by_count.groups[0].name == "@scope/package-a"
    assert by_count.total_releases == 7
    assert by_name.groups[0].name == "repo"


def test_close_closes_source(mock_releases):
    service, source = _service({1: mock_releases})

    asyncio.run(service.close())

    assert source.closed
