"""Grouping and ordering of releases by inferred package."""
import unicodedata
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Sequence, Tuple

from reposcoop.domain.models import (
    ExtractedIdentity,
    GroupedRecord,
    GroupedResult,
    PackageGroup,
    ReleaseRecord,
)
from reposcoop.domain.package_patterns import (
    DEFAULT_PACKAGE,
    extract_package_info,
    is_default_package,
)


SORT_KEYS = ("name", "count", "date")
SORT_ORDERS = ("asc", "desc")

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def collation_key(text: str) -> Tuple[str, str]:
    """Sort key approximating locale-aware comparison.

    Accents and case only break ties, so ``alpha`` < ``Beta`` < ``beta``.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), text


def _timestamp_key(release: GroupedRecord) -> datetime:
    return release.timestamp or _OLDEST


def resolve_identity(record: ReleaseRecord) -> ExtractedIdentity:
    """Work out which package a release belongs to.

    The tag is the primary label; the title is consulted only when the tag
    yields the default package. Releases whose labels name no package at all
    resolve to the default package with the raw tag (or title) as version.
    A ``Version`` package is folded into the default package afterwards and
    keeps the version it was extracted with.
    """
    identity = extract_package_info(record.tag_name)
    if identity.package_name == DEFAULT_PACKAGE:
        identity = extract_package_info(record.name)
    if identity.package_name == DEFAULT_PACKAGE:
        return ExtractedIdentity(DEFAULT_PACKAGE, record.tag_name or record.name)
    if is_default_package(identity.package_name):
        return ExtractedIdentity(DEFAULT_PACKAGE, identity.version)
    return identity


def group_releases_by_package(
    releases: Iterable[ReleaseRecord],
    aggregate_name: str = DEFAULT_PACKAGE
) -> GroupedResult:
    """Group releases by the package their labels refer to.

    When no release names a package, everything goes into a single group
    named after the repository. Otherwise releases without a package are
    collected in that repository-named group and every other release goes
    into the group of its package.

    Args:
        releases: Releases in any order
        aggregate_name: Display name for the catch-all group, usually the repository name

    Returns:
        GroupedResult with groups sorted by name and releases newest first
    """
    aggregate_name = aggregate_name or DEFAULT_PACKAGE

    grouped: List[GroupedRecord] = []
    for record in releases:
        identity = resolve_identity(record)
        grouped.append(GroupedRecord(
            record=record,
            package_name=identity.package_name,
            version=identity.version,
            sort_key=record.sort_key
        ))

    has_meaningful_grouping = any(
        release.package_name != DEFAULT_PACKAGE for release in grouped
    )

    group_map: Dict[str, List[GroupedRecord]] = {}
    for release in grouped:
        if not has_meaningful_grouping or release.package_name == DEFAULT_PACKAGE:
            key = aggregate_name
        else:
            key = release.package_name
        group_map.setdefault(key, []).append(release)

    groups = [
        PackageGroup(
            name=name,
            releases=tuple(sorted(members, key=_timestamp_key, reverse=True))
        )
        for name, members in group_map.items()
    ]
    groups.sort(key=lambda group: collation_key(group.name))

    return GroupedResult(groups=tuple(groups), total_releases=len(grouped))


def sort_package_groups(
    groups: Sequence[PackageGroup],
    sort_by: str = "name",
    sort_order: str = "asc"
) -> Tuple[PackageGroup, ...]:
    """Return the groups reordered by name, release count or latest release date.

    Descending order is the exact reverse of ascending order.

    Raises:
        ValueError: Unknown sort key or order
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort_by!r} (expected one of {SORT_KEYS})")
    if sort_order not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order: {sort_order!r} (expected one of {SORT_ORDERS})")

    if sort_by == "name":
        ordered = sorted(groups, key=lambda group: collation_key(group.name))
    elif sort_by == "count":
        ordered = sorted(groups, key=lambda group: group.release_count)
    else:
        ordered = sorted(groups, key=lambda group: _timestamp_key(group.latest_release))

    if sort_order == "desc":
        ordered.reverse()

    return tuple(ordered)
