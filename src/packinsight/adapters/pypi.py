"""PyPI package index adapter."""

import re
import urllib.parse

from packinsight.adapters.base import BaseAdapter, normalize_repo_url
from packinsight.http import Ok
from packinsight.models.schemas import (
    DownloadStats,
    Ecosystem,
    PackageMetadata,
    PackageSuggestion,
)


class PyPiAdapter(BaseAdapter):
    """Adapter for the Python Package Index (PyPI).

    Data sources:
    - Package metadata: https://pypi.org/pypi/{package}/json
    - Download stats: https://pypistats.org/api/packages/{package}/recent

    The JSON endpoint describes the current release only, so the requested
    version is not used for metadata: ``current_version`` and
    ``latest_version`` are both the index's info version.
    """

    PYPI_URL = "https://pypi.org/pypi"
    STATS_URL = "https://pypistats.org/api"
    PROJECT_PAGE_URL = "https://pypi.org/project"

    # project_urls keys that point at the source repository, in priority order
    REPO_KEYS = ("Source", "Repository", "GitHub")

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.PYTHON

    def _normalize_name(self, name: str) -> str:
        """Normalize a PyPI package name.

        PyPI package names are case-insensitive and treat underscores,
        hyphens, and periods as equivalent.
        """
        return re.sub(r"[-_.]+", "-", name).lower()

    async def _fetch_project(self, name: str) -> dict | None:
        result = await self.http.get_json(
            f"{self.PYPI_URL}/{urllib.parse.quote(name, safe='')}/json",
            max_attempts=3,
            timeout=15.0,
        )
        if not isinstance(result, Ok) or not isinstance(result.value, dict):
            return None
        return result.value

    async def get_package_metadata(self, name: str, version: str) -> PackageMetadata:
        """Fetch metadata for a PyPI package.

        Args:
            name: Package name.
            version: Requested version. Not used; see the class docstring.

        Returns:
            PackageMetadata, empty if the index could not be reached.
        """
        data = await self._fetch_project(name)
        if data is None:
            return PackageMetadata()

        info = data.get("info") or {}
        project_urls = info.get("project_urls") or {}
        info_version = info.get("version")

        repository_url = None
        for key in self.REPO_KEYS:
            if project_urls.get(key):
                repository_url = normalize_repo_url(project_urls[key])
                break

        project_page = f"{self.PROJECT_PAGE_URL}/{name}/"

        return PackageMetadata(
            description=info.get("summary"),
            license=info.get("license") or None,
            author=info.get("author") or None,
            homepage=info.get("home_page") or project_urls.get("Homepage"),
            repository=repository_url,
            last_publish=self._last_publish(data.get("releases") or {}, info_version),
            latest_version=info_version,
            current_version=info_version,
            maintainers=1 if info.get("maintainer") else 0,
            has_tests=bool(project_urls.get("Tests")),
            registry_url=project_page,
            github_url=repository_url,
            official_url=info.get("home_page") or project_page,
        )

    def _last_publish(self, releases: dict, version: str | None) -> str | None:
        """Upload time of the first file of a release."""
        files = releases.get(version) if version else None
        if not files:
            return None
        return files[0].get("upload_time")

    async def get_download_stats(self, name: str) -> DownloadStats:
        """Fetch recent download counts from pypistats.

        Returns an empty DownloadStats (every window None) on failure.
        """
        result = await self.http.get_json(
            f"{self.STATS_URL}/packages/{self._normalize_name(name)}/recent",
            max_attempts=2,
            timeout=10.0,
        )
        if not isinstance(result, Ok) or not isinstance(result.value, dict):
            return DownloadStats()

        # pypistats returns: {"data": {"last_day": N, "last_week": N, "last_month": N}}
        stats = result.value.get("data") or {}
        return DownloadStats(
            last_day=stats.get("last_day"),
            last_week=stats.get("last_week"),
            last_month=stats.get("last_month"),
        )

    async def search(self, query: str, limit: int = 10) -> list[PackageSuggestion]:
        """Suggest packages for a query.

        PyPI has no JSON search API: the exact name is looked up, then
        common naming variations are offered as unverified suggestions.
        """
        if len(query) < 2:
            return []

        suggestions = []
        data = await self._fetch_project(query)
        if data is not None:
            info = data.get("info") or {}
            suggestions.append(
                PackageSuggestion(
                    name=info.get("name") or query,
                    description=(info.get("summary") or "")[:100] or None,
                    version=info.get("version"),
                )
            )

        variations = [query, f"{query}2", f"{query}3", f"python-{query}", f"{query}-python"]
        for variant in variations:
            if not any(s.name == variant for s in suggestions):
                suggestions.append(PackageSuggestion(name=variant))

        return suggestions[:limit]

    async def list_versions(self, name: str, limit: int = 10) -> list[str]:
        """Release versions in reverse index order, newest first."""
        data = await self._fetch_project(name)
        releases = (data or {}).get("releases")
        if not isinstance(releases, dict):
            return []
        return list(reversed(list(releases)))[:limit]
