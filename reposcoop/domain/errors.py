"""Errors raised at the release fetch boundary."""
from datetime import datetime
from typing import Optional


class ReleaseFetchError(Exception):
    """Base class for failures while fetching releases."""
    pass


class RepositoryNotFoundError(ReleaseFetchError):
    """Raised when the repository does not exist or is not visible."""

    def __init__(self, owner: str, repo: str):
        self.owner = owner
        self.repo = repo
        super().__init__(
            f"Repository {owner}/{repo} not found. It may be private or doesn't exist."
        )


class RateLimitError(ReleaseFetchError):
    """Raised when the API quota is exhausted.

    Carries the moment the quota resets so callers can wait for it.
    """

    def __init__(self, reset_at: datetime):
        self.reset_at = reset_at
        local_reset = reset_at.astimezone()
        super().__init__(
            f"GitHub API rate limit exceeded. Resets at {local_reset:%H:%M:%S %Z}"
        )


class RemoteAPIError(ReleaseFetchError):
    """Raised for any other non-success response."""

    def __init__(self, status: int, reason: Optional[str] = None):
        self.status = status
        self.reason = reason or ""
        super().__init__(f"GitHub API error: {status} {self.reason}".rstrip())
