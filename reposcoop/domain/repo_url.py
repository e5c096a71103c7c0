"""Parsing and formatting of GitHub repository URLs."""
import re
from typing import Optional, Tuple


_GITHUB_URL = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/([^/\s]+)/([^/\s#?]+)",
    re.IGNORECASE
)


def parse_github_url(url: Optional[str]) -> Optional[Tuple[str, str]]:
    """Extract owner and repository name from a GitHub repository URL.

    Accepts URLs with or without scheme, ``www.`` prefix, trailing slash,
    query string or fragment. A trailing ``.git`` is removed.

    Examples:
        >>> parse_github_url("https://github.com/sveltejs/kit")
        ('sveltejs', 'kit')
        >>> parse_github_url("github.com/facebook/react")
        ('facebook', 'react')
        >>> parse_github_url("https://gitlab.com/user/repo") is None
        True

    Returns:
        ``(owner, repo)`` tuple, or None if the URL is not a repository URL
    """
    if not url:
        return None

    match = _GITHUB_URL.match(url.strip())
    if match is None:
        return None

    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[:-4]
    if not owner or not repo or "." in owner:
        return None
    return owner, repo


def is_valid_github_url(url: Optional[str]) -> bool:
    return parse_github_url(url) is not None


def format_github_url(owner: str, repo: str) -> str:
    return f"https://github.com/{owner}/{repo}"


def parse_repository(value: str) -> Optional[Tuple[str, str]]:
    """Accept either a GitHub URL or a bare ``owner/repo`` slug."""
    parsed = parse_github_url(value)
    if parsed is not None:
        return parsed
    parts = value.strip().strip("/").split("/")
    if len(parts) == 2 and all(parts) and "." not in parts[0]:
        return parts[0], parts[1]
    return None
