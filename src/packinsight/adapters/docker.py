"""Docker Hub image adapter."""

from packinsight.adapters.base import BaseAdapter
from packinsight.http import Ok
from packinsight.models.schemas import Ecosystem, PackageMetadata, PackageSuggestion


class DockerHubAdapter(BaseAdapter):
    """Adapter for Docker Hub.

    Data sources:
    - Repository: https://hub.docker.com/v2/repositories/{namespace}/{name}
    - Tags: https://hub.docker.com/v2/repositories/{namespace}/{name}/tags
    - Search: https://hub.docker.com/v2/search/repositories/

    Images have no dependency list and no windowed download stats; the
    cumulative pull count is stored as ``PackageMetadata.downloads``.
    """

    BASE_URL = "https://hub.docker.com/v2"
    HUB_PAGE_URL = "https://hub.docker.com/r"

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.DOCKER

    def repository_path(self, name: str) -> str:
        """Qualify official images (no namespace) with ``library/``."""
        return name if "/" in name else f"library/{name}"

    async def get_package_metadata(self, name: str, version: str) -> PackageMetadata:
        """Fetch metadata for a Docker Hub image.

        Args:
            name: Image name, e.g. "nginx" or "bitnami/redis".
            version: Requested tag. Docker Hub metadata is per repository.

        Returns:
            PackageMetadata, empty if Docker Hub could not be reached.
        """
        path = self.repository_path(name)
        result = await self.http.get_json(
            f"{self.BASE_URL}/repositories/{path}",
            max_attempts=3,
            timeout=15.0,
        )
        if not isinstance(result, Ok) or not isinstance(result.value, dict):
            return PackageMetadata()
        data = result.value

        hub_page = f"{self.HUB_PAGE_URL}/{name}"

        return PackageMetadata(
            description=data.get("description") or None,
            author=data.get("user"),
            last_publish=data.get("last_updated"),
            stars=data.get("star_count"),
            downloads=data.get("pull_count"),
            bundle_size=await self.fetch_image_size(path),
            registry_url=hub_page,
            official_url=hub_page,
        )

    async def fetch_image_size(self, path: str) -> str | None:
        """Size of the most recent tag. Single attempt; failure yields None."""
        result = await self.http.get_json(
            f"{self.BASE_URL}/repositories/{path}/tags",
            params={"page_size": 1},
            max_attempts=1,
            timeout=5.0,
        )
        if not isinstance(result, Ok) or not isinstance(result.value, dict):
            return None
        tags = result.value.get("results") or []
        size = tags[0].get("full_size") if tags else None
        if not size:
            return None
        return f"{size / 1024 / 1024:.1f} MB"

    async def get_download_stats(self, name: str) -> None:
        return None

    async def search(self, query: str, limit: int = 10) -> list[PackageSuggestion]:
        """Search Docker Hub repositories."""
        if len(query) < 2:
            return []

        result = await self.http.get_json(
            f"{self.BASE_URL}/search/repositories/",
            params={"query": query, "page_size": limit},
        )
        if not isinstance(result, Ok) or not isinstance(result.value, dict):
            return []

        return [
            PackageSuggestion(
                name=item["repo_name"],
                description=(item.get("short_description") or "")[:100] or None,
                version="latest",
            )
            for item in (result.value.get("results") or [])[:limit]
            if item.get("repo_name")
        ]
