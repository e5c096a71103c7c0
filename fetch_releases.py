"""Main entry point for fetching and grouping a repository's releases.

Usage:
    python fetch_releases.py <owner/repo | github url> [output.json]
"""
import asyncio
import os
import sys
import logging
import aiohttp
from dotenv import load_dotenv
from reposcoop.application.release_fetcher import ReleaseFetcher
from reposcoop.application.release_service import ReleaseService
from reposcoop.domain.errors import ReleaseFetchError
from reposcoop.domain.repo_url import parse_repository
from reposcoop.infrastructure.github_client import GitHubReleaseClient, GITHUB_API_URL
from reposcoop.infrastructure.json_exporter import export_grouped_result
from reposcoop.infrastructure.retry_policy import RetryPolicy

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_service() -> ReleaseService:
    """Wire the release service from environment configuration."""
    api_url = os.getenv("GITHUB_API_URL", GITHUB_API_URL)
    per_page = int(os.getenv("RELEASES_PER_PAGE", "100"))
    timeout = float(os.getenv("REQUEST_TIMEOUT", "30"))
    max_attempts = int(os.getenv("FETCH_MAX_ATTEMPTS", "3"))
    initial_delay = float(os.getenv("FETCH_INITIAL_DELAY", "1.0"))
    max_concurrency = int(os.getenv("FETCH_MAX_CONCURRENCY", "5"))

    client = GitHubReleaseClient(api_url=api_url, per_page=per_page, timeout=timeout)
    fetcher = ReleaseFetcher(
        source=client,
        retry_policy=RetryPolicy(max_attempts=max_attempts, initial_delay=initial_delay),
        max_concurrency=max_concurrency
    )
    return ReleaseService(fetcher)


async def main(argv):
    """Fetch, group and export the releases of one repository."""
    if len(argv) < 2:
        logger.error("Usage: fetch_releases.py <owner/repo | github url> [output.json]")
        sys.exit(1)

    parsed = parse_repository(argv[1])
    if parsed is None:
        logger.error(f"Not a GitHub repository: {argv[1]}")
        sys.exit(1)
    owner, repo = parsed
    output_file = argv[2] if len(argv) > 2 else f"{owner}.{repo}.output.json"

    service = build_service()

    try:
        history = await service.load_release_history(owner, repo)

        logger.info("=" * 50)
        logger.info(f"Release history of {history.full_name}:")
        logger.info(f"  Releases: {history.grouped.total_releases}")
        logger.info(f"  Package groups: {len(history.grouped.groups)}")
        for group in history.grouped.groups:
            logger.info(
                f"    {group.name}: {group.release_count} release(s), "
                f"latest {group.latest_release.version}"
            )
        if history.metadata:
            logger.info(f"  Rate limit remaining: {history.metadata.rate_limit.remaining}")
        logger.info(f"  Duration: {history.duration_seconds:.2f} seconds")
        logger.info("=" * 50)

        if history.is_partial:
            logger.warning(f"Release history is incomplete: {history.error}")

        export_grouped_result(history.grouped, output_file)

    except (ReleaseFetchError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Fetching releases failed: {e}")
        sys.exit(1)
    finally:
        await service.close()


if __name__ == "__main__":
    asyncio.run(main(sys.argv))
