"""Release source interface (port) for fetching release pages.

This is the anti-corruption layer that shields the domain from the remote API's specifics.
"""
from abc import ABC, abstractmethod
from reposcoop.domain.models import ReleasePage


class IReleaseSource(ABC):
    """Abstract interface for paginated release listings."""

    @abstractmethod
    async def fetch_page(self, owner: str, repo: str, page: int = 1) -> ReleasePage:
        """Fetch one page of releases.

        Args:
            owner: Repository owner
            repo: Repository name
            page: 1-based page number

        Returns:
            The page's releases and metadata

        Raises:
            RepositoryNotFoundError: The repository does not exist
            RateLimitError: The API quota is exhausted
            RemoteAPIError: Any other non-success response
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
