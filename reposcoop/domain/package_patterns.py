"""Package identity extraction from free-text release labels.

Release tags and titles in monorepos usually encode the package they belong
to (``@clerk/nextjs@4.23.2``, ``eslint-plugin-react-hooks@5.0.0``,
``package-d-4.0.0``). The rules below are tried in order and the first
match wins; the order itself decides between overlapping rules.
"""
import re
from typing import Callable, Iterable, List, Optional

from reposcoop.domain.models import ExtractedIdentity, ReleaseRecord


DEFAULT_PACKAGE = "default"

_NAME = r"[a-zA-Z0-9-]+"
_REGISTRY_NAME = r"[a-zA-Z0-9._-]+"
_SEMVER = r"\d+\.\d+\.\d+(?:-[a-zA-Z0-9.-]+)?"

_SEPARATORS = re.compile(r"[\s-]+")
_LEADING_SEPARATORS = re.compile(r"^[\s-]+")
_VERSION_MARKERS = ("version", "v")
_NUMERIC_TOKEN = re.compile(r"^v?\d+(?:\.\d+)+$")
_MARKER_PREFIX = re.compile(r"^(?:version|v)[\s-]+", re.IGNORECASE)


class PackagePattern:
    """A single extraction rule: a regex and how to read its groups."""

    def __init__(
        self,
        name: str,
        pattern: str,
        build: Callable[[re.Match], ExtractedIdentity]
    ):
        self.name = name
        self.regex: re.Pattern = re.compile(pattern)
        self._build = build

    def match(self, label: str) -> Optional[ExtractedIdentity]:
        """Returns the identity encoded in ``label``, or None if the rule does not apply."""
        match = self.regex.match(label)
        if match is None:
            return None
        return self._build(match)

    def __repr__(self) -> str:
        return f"PackagePattern({self.name!r})"


SCOPED_AT_VERSION = PackagePattern(
    "scoped-at-version",
    rf"^@({_REGISTRY_NAME})/({_REGISTRY_NAME})@(.*?)$",
    lambda m: ExtractedIdentity(f"@{m.group(1)}/{m.group(2)}", m.group(3)),
)

NAME_AT_VERSION = PackagePattern(
    "name-at-version",
    rf"^({_REGISTRY_NAME})@(.*?)$",
    lambda m: ExtractedIdentity(m.group(1), m.group(2)),
)

VERSION_WITH_PACKAGE_SUFFIX = PackagePattern(
    "version-with-package-suffix",
    rf"^v?({_SEMVER})(?:\s+\(({_NAME})\))?$",
    lambda m: ExtractedIdentity(m.group(2) or DEFAULT_PACKAGE, m.group(1)),
)

NAME_SPACE_VERSION = PackagePattern(
    "name-space-version",
    rf"^({_NAME})\s+v?({_SEMVER})$",
    lambda m: ExtractedIdentity(m.group(1), m.group(2)),
)

NAME_DASH_VERSION = PackagePattern(
    "name-dash-version",
    rf"^({_NAME})-({_SEMVER})$",
    lambda m: ExtractedIdentity(m.group(1), m.group(2)),
)

# Evaluation order is significant.
PACKAGE_PATTERNS = (
    SCOPED_AT_VERSION,
    NAME_AT_VERSION,
    VERSION_WITH_PACKAGE_SUFFIX,
    NAME_SPACE_VERSION,
    NAME_DASH_VERSION,
)


def is_default_package(package_name: str) -> bool:
    """Check whether a package name stands for "no specific package".

    A literal ``Version`` package (from titles like ``Version-6.0.0``) is
    treated the same as the default package.
    """
    return not package_name or package_name.lower() in (DEFAULT_PACKAGE, "version")


def _split_fallback(label: str) -> ExtractedIdentity:
    tokens = [token for token in _SEPARATORS.split(label) if token]
    if len(tokens) < 2:
        return ExtractedIdentity(DEFAULT_PACKAGE, label)

    first = tokens[0]
    if first.lower() in _VERSION_MARKERS:
        return ExtractedIdentity(DEFAULT_PACKAGE, _MARKER_PREFIX.sub("", label).strip())
    if _NUMERIC_TOKEN.match(first):
        return ExtractedIdentity(DEFAULT_PACKAGE, label)

    rest = label[label.find(first) + len(first):]
    return ExtractedIdentity(first, _LEADING_SEPARATORS.sub("", rest).strip())


def extract_package_info(label: Optional[str]) -> ExtractedIdentity:
    """Extract a package name and version from a release tag or title.

    Never fails: labels that no rule recognises fall back to splitting on
    whitespace and hyphens, and finally to the default package.

    Args:
        label: Release tag or title

    Returns:
        ExtractedIdentity with package name (``"default"`` when unknown) and version
    """
    label = (label or "").strip()
    if not label:
        return ExtractedIdentity(DEFAULT_PACKAGE, "")

    for pattern in PACKAGE_PATTERNS:
        identity = pattern.match(label)
        if identity is not None:
            return identity

    return _split_fallback(label)


def detect_package_patterns(records: Iterable[ReleaseRecord]) -> List[str]:
    """List the distinct package names found in a batch of releases.

    Both the tag and the title of every release are inspected. Names are
    returned in the order they are first seen.
    """
    seen: List[str] = []
    for record in records:
        for label in (record.tag_name, record.name):
            package_name = extract_package_info(label).package_name
            if not is_default_package(package_name) and package_name not in seen:
                seen.append(package_name)
    return seen
