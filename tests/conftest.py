"""Shared fixtures for release tests."""
import pytest
from reposcoop.domain.models import ReleaseRecord


def build_release(release_id, tag_name, name=None, published_at=None, created_at=None):
    """Create a release with the fields the grouping rules look at."""
    created = created_at or published_at or "2025-01-01T00:00:00Z"
    return ReleaseRecord(
        release_id=release_id,
        tag_name=tag_name,
        name=name if name is not None else tag_name,
        created_at=created,
        published_at=published_at,
        body=f"Release notes for {tag_name}",
        html_url=f"https://github.com/test/repo/releases/tag/{tag_name}",
    )


@pytest.fixture
def make_release():
    return build_release


@pytest.fixture
def mock_releases():
    """Seven releases covering every label pattern; six name a package."""
    return [
        build_release(1, "@scope/package-a@1.0.0", published_at="2025-01-01T00:00:00Z"),
        build_release(2, "@scope/package-a@1.1.0", published_at="2025-01-02T00:00:00Z"),
        build_release(3, "package-b@2.0.0", published_at="2025-01-03T00:00:00Z"),
        build_release(4, "v3.0.0", "v3.0.0 (package-c)", published_at="2025-01-04T00:00:00Z"),
        build_release(5, "package-d-4.0.0", published_at="2025-01-05T00:00:00Z"),
        build_release(6, "package-e v5.0.0", published_at="2025-01-06T00:00:00Z"),
        build_release(7, "v6.0.0", "Version 6.0.0", published_at="2025-01-07T00:00:00Z"),
    ]
