"""NPM package registry adapter."""

import asyncio
import urllib.parse

from packinsight.adapters.base import BaseAdapter, normalize_repo_url
from packinsight.http import Ok, safe_json
from packinsight.models.schemas import (
    DownloadStats,
    Ecosystem,
    PackageMetadata,
    PackageSuggestion,
)


class NpmAdapter(BaseAdapter):
    """Adapter for the NPM package registry.

    Data sources:
    - Package metadata: https://registry.npmjs.org/{package}
    - Download stats: https://api.npmjs.org/downloads/point/{period}/{package}
    - Bundle size: https://bundlephobia.com/api/size?package={package}@{version}
    - Search: https://registry.npmjs.org/-/v1/search
    """

    REGISTRY_URL = "https://registry.npmjs.org"
    DOWNLOADS_URL = "https://api.npmjs.org/downloads"
    BUNDLEPHOBIA_URL = "https://bundlephobia.com/api/size"
    PACKAGE_PAGE_URL = "https://www.npmjs.com/package"

    DOWNLOAD_PERIODS = ("last-day", "last-week", "last-month")

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.NPM

    def _encode_name(self, name: str) -> str:
        """URL-encode a package name, including the scope separator."""
        return urllib.parse.quote(name, safe="")

    async def get_package_metadata(self, name: str, version: str) -> PackageMetadata:
        """Fetch metadata for an NPM package.

        The latest version comes from the ``latest`` dist-tag. Fields that
        live on a version record (license, dependencies, scripts) are read
        from the requested version, falling back to the latest version when
        the requested one is not published (for example "latest" itself).

        Args:
            name: Package name (supports scoped packages like @org/pkg).
            version: Requested version.

        Returns:
            PackageMetadata, empty if the registry could not be reached.
        """
        result = await self.http.get_json(
            f"{self.REGISTRY_URL}/{self._encode_name(name)}",
            max_attempts=3,
            timeout=15.0,
        )
        if not isinstance(result, Ok) or not isinstance(result.value, dict):
            return PackageMetadata()
        data = result.value

        latest_version = (data.get("dist-tags") or {}).get("latest") or version
        versions = data.get("versions") or {}
        version_data = versions.get(version) or versions.get(latest_version) or {}

        repository_url = normalize_repo_url(data.get("repository") or version_data.get("repository"))
        times = data.get("time") or {}
        package_page = f"{self.PACKAGE_PAGE_URL}/{name}"

        return PackageMetadata(
            description=data.get("description"),
            license=self._extract_license(data, version_data),
            author=self._extract_author(data.get("author")),
            homepage=data.get("homepage"),
            repository=repository_url,
            dependencies=dict(version_data.get("dependencies") or {}),
            last_publish=times.get(version) or times.get("modified"),
            latest_version=latest_version,
            current_version=version,
            is_deprecated=bool(data.get("deprecated")),
            maintainers=len(data.get("maintainers") or []),
            has_tests=bool((version_data.get("scripts") or {}).get("test")),
            bundle_size=await self.fetch_bundle_size(name, latest_version),
            registry_url=package_page,
            github_url=repository_url,
            official_url=data.get("homepage") or package_page,
        )

    def _extract_license(self, data: dict, version_data: dict) -> str | None:
        """Extract license from npm package data.

        The field is a string, a {"type": ...} object, or a legacy list of them.
        """
        license_info = version_data.get("license") or data.get("license")

        if isinstance(license_info, str):
            return license_info
        elif isinstance(license_info, dict):
            return license_info.get("type") or license_info.get("name")
        elif isinstance(license_info, list) and license_info:
            first = license_info[0]
            if isinstance(first, str):
                return first
            elif isinstance(first, dict):
                return first.get("type") or first.get("name")

        return None

    def _extract_author(self, author: dict | str | None) -> str | None:
        if isinstance(author, dict):
            return author.get("name")
        if isinstance(author, str):
            return author
        return None

    async def fetch_bundle_size(self, name: str, version: str) -> str | None:
        """Fetch the minified bundle size from bundlephobia.

        Single attempt with a short timeout; any failure yields None.
        """
        result = await self.http.get_json(
            self.BUNDLEPHOBIA_URL,
            params={"package": f"{name}@{version}"},
            max_attempts=1,
            timeout=5.0,
        )
        if not isinstance(result, Ok) or not isinstance(result.value, dict):
            return None
        size = result.value.get("size")
        if not size:
            return None
        return f"{size / 1024:.1f} KB"

    async def get_download_stats(self, name: str) -> DownloadStats:
        """Fetch day, week and month download counts concurrently.

        A window whose request fails counts as 0 without affecting the
        other two.
        """
        encoded_name = self._encode_name(name)
        responses = await asyncio.gather(
            *(
                self.http.fetch_with_retry(
                    "GET",
                    f"{self.DOWNLOADS_URL}/point/{period}/{encoded_name}",
                    max_attempts=2,
                    timeout=5.0,
                )
                for period in self.DOWNLOAD_PERIODS
            )
        )
        day, week, month = (self._downloads(safe_json(response)) for response in responses)
        return DownloadStats(last_day=day, last_week=week, last_month=month)

    def _downloads(self, payload: dict | None) -> int:
        if not isinstance(payload, dict):
            return 0
        return payload.get("downloads") or 0

    async def search(self, query: str, limit: int = 10) -> list[PackageSuggestion]:
        """Search the registry by text."""
        if len(query) < 2:
            return []

        result = await self.http.get_json(
            f"{self.REGISTRY_URL}/-/v1/search",
            params={"text": query, "size": limit},
        )
        if not isinstance(result, Ok) or not isinstance(result.value, dict):
            return []

        suggestions = []
        for obj in result.value.get("objects") or []:
            package = obj.get("package") or {}
            if not package.get("name"):
                continue
            suggestions.append(
                PackageSuggestion(
                    name=package["name"],
                    description=(package.get("description") or "")[:100] or None,
                    version=package.get("version"),
                )
            )
        return suggestions[:limit]

    async def list_versions(self, name: str, limit: int = 10) -> list[str]:
        """Published versions in reverse registry order, newest first."""
        result = await self.http.get_json(
            f"{self.REGISTRY_URL}/{self._encode_name(name)}",
            max_attempts=2,
            timeout=10.0,
        )
        if not isinstance(result, Ok) or not isinstance(result.value, dict):
            return []
        versions = result.value.get("versions")
        if not isinstance(versions, dict):
            return []
        return list(reversed(list(versions)))[:limit]

    async def monthly_downloads(self, name: str) -> int | None:
        """Last-month download count, or None if the API gave no answer."""
        result = await self.http.get_json(
            f"{self.DOWNLOADS_URL}/point/last-month/{self._encode_name(name)}",
            max_attempts=1,
            timeout=5.0,
        )
        if not isinstance(result, Ok) or not isinstance(result.value, dict):
            return None
        downloads = result.value.get("downloads")
        return downloads if isinstance(downloads, int) else None
