"""Domain models representing releases, package groups and page metadata."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, NamedTuple, Optional, Tuple, Union


EPOCH_ISO = "1970-01-01T00:00:00Z"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by the GitHub API.

    Naive values are assumed to be UTC. Returns None for empty or
    malformed input.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ReleaseAuthor:
    """Author of a release."""
    login: str = ""
    avatar_url: str = ""
    html_url: str = ""


@dataclass(frozen=True)
class ReleaseRecord:
    """Immutable domain entity representing one release of a repository.

    Created at the fetch boundary and never mutated afterwards.
    """
    release_id: Union[int, str]
    tag_name: str
    name: str
    created_at: str
    published_at: Optional[str] = None
    body: str = ""
    url: str = ""
    html_url: str = ""
    draft: bool = False
    prerelease: bool = False
    author: ReleaseAuthor = field(default_factory=ReleaseAuthor)

    @property
    def sort_key(self) -> str:
        """Returns the timestamp string used for ordering (published, else created)."""
        return self.published_at or self.created_at

    @property
    def timestamp(self) -> Optional[datetime]:
        """Returns the parsed ordering timestamp, or None if it cannot be parsed."""
        return parse_timestamp(self.sort_key)

    @classmethod
    def from_api(cls, data: Dict[str, Any], index: int = 0) -> 'ReleaseRecord':
        """Build a record from a release-like JSON object.

        Missing fields get safe defaults so that partially filled objects
        (hand-written fixtures, exported files) can still be grouped.

        Args:
            data: Release object as returned by the releases endpoint
            index: Position of the object, used when it carries no id

        Returns:
            ReleaseRecord instance
        """
        created = data.get("created_at") or data.get("published_at") or EPOCH_ISO
        author = data.get("author") or {}
        tag_name = data.get("tag_name") or ""
        return cls(
            release_id=data.get("id") if data.get("id") is not None else index,
            tag_name=str(tag_name),
            name=str(data.get("name") or tag_name),
            created_at=str(created),
            published_at=data.get("published_at") or None,
            body=str(data.get("body") or ""),
            url=str(data.get("url") or ""),
            html_url=str(data.get("html_url") or ""),
            draft=bool(data.get("draft", False)),
            prerelease=bool(data.get("prerelease", False)),
            author=ReleaseAuthor(
                login=str(author.get("login") or ""),
                avatar_url=str(author.get("avatar_url") or ""),
                html_url=str(author.get("html_url") or ""),
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Returns the record in the release endpoint's JSON shape."""
        return {
            "id": self.release_id,
            "url": self.url,
            "html_url": self.html_url,
            "tag_name": self.tag_name,
            "name": self.name,
            "draft": self.draft,
            "prerelease": self.prerelease,
            "created_at": self.created_at,
            "published_at": self.published_at,
            "body": self.body,
            "author": {
                "login": self.author.login,
                "avatar_url": self.author.avatar_url,
                "html_url": self.author.html_url,
            },
        }


class ExtractedIdentity(NamedTuple):
    """Package name and version inferred from a release label."""
    package_name: str
    version: str


@dataclass(frozen=True)
class GroupedRecord:
    """A release together with the identity it was grouped under."""
    record: ReleaseRecord
    package_name: str
    version: str
    sort_key: str

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.record.timestamp


@dataclass(frozen=True)
class PackageGroup:
    """Releases sharing one package identity, newest first."""
    name: str
    releases: Tuple[GroupedRecord, ...]

    @property
    def release_count(self) -> int:
        return len(self.releases)

    @property
    def latest_release(self) -> GroupedRecord:
        return self.releases[0]


@dataclass(frozen=True)
class GroupedResult:
    """Package groups of a release batch, sorted by group name."""
    groups: Tuple[PackageGroup, ...]
    total_releases: int

    def get_group(self, name: str) -> Optional[PackageGroup]:
        """Returns the group with the given name, if any."""
        for group in self.groups:
            if group.name == name:
                return group
        return None


@dataclass(frozen=True)
class RateLimit:
    """Snapshot of the remote API's rate-limit counters."""
    limit: int
    remaining: int
    reset_epoch: int

    @property
    def reset_at(self) -> datetime:
        """Returns the moment the current rate-limit window resets."""
        return datetime.fromtimestamp(self.reset_epoch, tz=timezone.utc)


@dataclass(frozen=True)
class PageMetadata:
    """Metadata disclosed by a single page request."""
    rate_limit: RateLimit
    last_page: int = 1
    total_count: Optional[int] = None


@dataclass(frozen=True)
class ReleasePage:
    """One page of releases and the metadata returned with it."""
    page: int
    records: Tuple[ReleaseRecord, ...]
    metadata: PageMetadata


@dataclass(frozen=True)
class FetchResult:
    """All releases of a repository with merged page metadata."""
    records: Tuple[ReleaseRecord, ...]
    metadata: PageMetadata


@dataclass(frozen=True)
class ReleaseHistory:
    """Outcome of loading a repository's release history.

    ``error`` holds the failure that stopped a later page; the records
    fetched before it are still present.
    """
    owner: str
    repo: str
    records: Tuple[ReleaseRecord, ...]
    grouped: GroupedResult
    metadata: Optional[PageMetadata]
    duration_seconds: float
    error: Optional[Exception] = None

    @property
    def full_name(self) -> str:
        """Returns the full repository name (owner/repo)."""
        return f"{self.owner}/{self.repo}"

    @property
    def is_partial(self) -> bool:
        return self.error is not None
