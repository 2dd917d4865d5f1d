"""Abstract base class for package registry adapters."""

import re
from abc import ABC, abstractmethod

from packinsight.http import ResilientClient
from packinsight.models.schemas import (
    DownloadStats,
    Ecosystem,
    PackageMetadata,
    PackageSuggestion,
)

GITHUB_REPO_PATTERN = re.compile(r"github\.com[/:]([^/]+)/([^/.]+)")


class BaseAdapter(ABC):
    """Base class for package registry adapters.

    Each adapter normalizes data from a specific registry into a common
    schema for scoring. Adapters are best-effort: they never raise on
    upstream failures and return partially populated records instead.
    """

    def __init__(self, http: ResilientClient | None = None) -> None:
        """Initialize the adapter.

        Args:
            http: Resilient client used for every registry call.
        """
        self.http = http or ResilientClient()

    @property
    @abstractmethod
    def ecosystem(self) -> Ecosystem:
        """Return the ecosystem this adapter handles."""
        ...

    @abstractmethod
    async def get_package_metadata(self, name: str, version: str) -> PackageMetadata:
        """Fetch metadata for a single package.

        Args:
            name: Package name.
            version: Requested version, or "latest".

        Returns:
            PackageMetadata with whatever fields the registry provided. An
            empty record if the registry could not be reached.
        """
        ...

    @abstractmethod
    async def get_download_stats(self, name: str) -> DownloadStats | None:
        """Fetch download statistics.

        Args:
            name: Package name.

        Returns:
            DownloadStats, or None if the ecosystem has no windowed stats.
        """
        ...

    @abstractmethod
    async def search(self, query: str, limit: int = 10) -> list[PackageSuggestion]:
        """Suggest package names matching a query.

        Args:
            query: Search text. Queries shorter than 2 characters return nothing.
            limit: Maximum number of suggestions.

        Returns:
            Suggestions, best match first.
        """
        ...

    async def list_versions(self, name: str, limit: int = 10) -> list[str]:
        """Published versions, newest first.

        Registries without a version listing return an empty list.
        """
        return []


def normalize_repo_url(repository: dict | str | None) -> str | None:
    """Normalize a registry repository field into a plain URL.

    Handles the formats registries use:
    - {"type": "git", "url": "git+https://github.com/owner/repo.git"}
    - "git://github.com/owner/repo.git"
    - "github:owner/repo"
    - "https://github.com/owner/repo"

    A leading ``git+`` prefix and a trailing ``.git`` suffix are stripped so
    that downstream URL matching works the same for every source.
    """
    if not repository:
        return None

    if isinstance(repository, str):
        url = repository
    elif isinstance(repository, dict):
        url = repository.get("url") or ""
    else:
        return None

    url = url.strip()
    if not url:
        return None

    url = re.sub(r"^git\+", "", url)
    if url.startswith("git://"):
        url = "https://" + url[len("git://"):]
    url = re.sub(r"\.git/?$", "", url)

    if url.startswith("github:"):
        url = f"https://github.com/{url[len('github:'):]}"

    return url or None


def parse_github_repo(url: str | None) -> tuple[str, str] | None:
    """Extract (owner, repo) from a GitHub URL.

    Returns:
        The owner and repository name, or None if the URL is not a GitHub
        repository URL.
    """
    if not url:
        return None
    match = GITHUB_REPO_PATTERN.search(url)
    if not match:
        return None
    owner, repo = match.groups()
    return owner, re.sub(r"\.git$", "", repo)
