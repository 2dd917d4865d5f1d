"""GitHub repository activity fetcher."""

import logging
import re

import httpx

from packinsight.adapters.base import parse_github_repo
from packinsight.http import ResilientClient, safe_json
from packinsight.models.schemas import RepositoryStats

logger = logging.getLogger(__name__)

LAST_PAGE_PATTERN = re.compile(r'page=(\d+)>; rel="last"')


class GitHubFetcher:
    """Fetches repository activity signals from the GitHub REST API.

    A token is optional; without one the anonymous rate limit applies.
    """

    BASE_URL = "https://api.github.com"

    def __init__(self, http: ResilientClient | None = None, token: str | None = None) -> None:
        """Initialize the fetcher.

        Args:
            http: Resilient client used for every request.
            token: GitHub personal access token.
        """
        self.http = http or ResilientClient()
        self._token = token

    def _headers(self) -> dict[str, str]:
        """Get headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "PackInsight",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get(self, path: str, params: dict | None = None) -> httpx.Response | None:
        return await self.http.fetch_with_retry(
            "GET",
            f"{self.BASE_URL}{path}",
            params=params,
            headers=self._headers(),
            max_attempts=2,
            timeout=10.0,
        )

    async def fetch_repo_stats(self, repo_url: str | None) -> RepositoryStats | None:
        """Fetch activity stats for the repository a URL points to.

        Args:
            repo_url: Repository URL in any format registries use.

        Returns:
            RepositoryStats, or None if the URL is not a GitHub repository or
            the repository summary could not be fetched.
        """
        parsed = parse_github_repo(repo_url)
        if parsed is None:
            return None
        owner, repo = parsed

        data = safe_json(await self._get(f"/repos/{owner}/{repo}"))
        if not isinstance(data, dict):
            logger.debug(f"No repository data for {owner}/{repo}")
            return None

        contributors = await self._count(
            f"/repos/{owner}/{repo}/contributors", {"per_page": 1, "anon": "true"}
        )
        pull_requests = await self._count(
            f"/repos/{owner}/{repo}/pulls", {"state": "all", "per_page": 1}, count_single_page=False
        )

        return RepositoryStats(
            stars=data.get("stargazers_count") or 0,
            forks=data.get("forks_count") or 0,
            watchers=data.get("watchers_count") or 0,
            open_issues=data.get("open_issues_count") or 0,
            contributors=contributors,
            pull_requests=pull_requests,
            last_commit=data.get("pushed_at"),
            created_at=data.get("created_at"),
            default_branch=data.get("default_branch"),
            language=data.get("language") or "Unknown",
            topics=data.get("topics") or [],
        )

    async def _count(self, path: str, params: dict, count_single_page: bool = True) -> int:
        """Count items of a paginated listing requested one per page.

        The page number of the ``rel="last"`` link equals the item count.
        Without a ``rel="last"`` link the listing fits on one page: with
        ``count_single_page`` that page is counted (1 when a Link header is
        present, otherwise the returned list length, which undercounts when
        GitHub omits the header), without it the count is 0. Any failure
        counts as 0.
        """
        response = await self._get(path, params)
        if response is None or not response.is_success:
            return 0

        link_header = response.headers.get("Link")
        if link_header:
            match = LAST_PAGE_PATTERN.search(link_header)
            if match:
                return int(match.group(1))
            return 1 if count_single_page else 0
        if not count_single_page:
            return 0

        items = safe_json(response)
        return len(items) if isinstance(items, list) else 0
