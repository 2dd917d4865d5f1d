"""OSV (Open Source Vulnerabilities) fetcher."""

import logging

from packinsight.http import FetchResult, Ok, ResilientClient, Unavailable
from packinsight.models.schemas import Ecosystem, PackageIdentifier, Severity, Vulnerability

logger = logging.getLogger(__name__)

# Explicit severity labels found in OSV records. GHSA-sourced records use
# "MODERATE" for the medium level.
SEVERITY_TAGS = {
    "critical": Severity.CRITICAL,
    "high": Severity.HIGH,
    "moderate": Severity.MEDIUM,
    "medium": Severity.MEDIUM,
    "low": Severity.LOW,
}

MAX_RESULTS = 10


def severity_from_score(score: float) -> Severity:
    """Map a numeric CVSS-style score to a severity level.

    >=9 critical, >=7 high, >=4 medium, anything lower is low.
    """
    if score >= 9:
        return Severity.CRITICAL
    if score >= 7:
        return Severity.HIGH
    if score >= 4:
        return Severity.MEDIUM
    return Severity.LOW


class OSVFetcher:
    """Fetches vulnerability data from the OSV database: https://osv.dev/

    Queries by exact package name, ecosystem and version. No authentication
    required.
    """

    BASE_URL = "https://api.osv.dev/v1"

    # Map our ecosystem names to OSV ecosystem names
    ECOSYSTEM_MAP = {
        Ecosystem.NPM: "npm",
        Ecosystem.PYTHON: "PyPI",
        Ecosystem.DOCKER: "Docker",
    }

    def __init__(self, http: ResilientClient | None = None) -> None:
        """Initialize the fetcher.

        Args:
            http: Resilient client used for the query.
        """
        self.http = http or ResilientClient()

    async def fetch(self, package: PackageIdentifier) -> FetchResult[list[Vulnerability]]:
        """Fetch vulnerabilities affecting a package version.

        The version is left out of the query when it is "latest", which
        returns advisories for every version.

        Returns:
            Ok with at most ten vulnerabilities, or Unavailable if the query
            failed.
        """
        body: dict = {
            "package": {
                "name": package.name,
                "ecosystem": self.ECOSYSTEM_MAP.get(package.ecosystem, package.ecosystem.value),
            }
        }
        if package.version != "latest":
            body["version"] = package.version

        result = await self.http.post_json(
            f"{self.BASE_URL}/query",
            json=body,
            max_attempts=3,
            timeout=20.0,
        )
        if not isinstance(result, Ok):
            return result

        vulns = result.value.get("vulns") if isinstance(result.value, dict) else None
        logger.debug(f"OSV returned {len(vulns or [])} records for {package.name}@{package.version}")
        try:
            return Ok([self.parse_vulnerability(v) for v in (vulns or [])[:MAX_RESULTS]])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed OSV record for {package.name}: {e}")
            return Unavailable("malformed OSV response")

    def parse_vulnerability(self, vuln: dict) -> Vulnerability:
        """Convert an OSV record to a Vulnerability."""
        severity, cvss = self._parse_severity(vuln)
        summary = vuln.get("summary")
        db_specific = vuln.get("database_specific") or {}

        return Vulnerability(
            id=vuln["id"],
            severity=severity,
            title=summary or "Security vulnerability",
            description=vuln.get("details") or summary or "No description available",
            cvss=cvss,
            cwe=list(db_specific.get("cwe_ids") or []),
            references=self._parse_references(vuln),
            fixed_in=self._parse_fixed_version(vuln),
        )

    def _parse_severity(self, vuln: dict) -> tuple[Severity, float | None]:
        """Extract severity and numeric score from an OSV record.

        An explicit severity label wins. Otherwise the first severity
        entry's score decides, if it is numeric; CVSS vector strings are
        not scored here. With neither, the severity is medium.

        Returns:
            Tuple of (severity, numeric score or None).
        """
        cvss_score = None
        severities = vuln.get("severity") or []
        if severities:
            try:
                cvss_score = float(severities[0].get("score"))
            except (TypeError, ValueError):
                cvss_score = None

        tags = [(vuln.get("database_specific") or {}).get("severity")]
        for affected in vuln.get("affected") or []:
            tags.append((affected.get("ecosystem_specific") or {}).get("severity"))

        for tag in tags:
            if isinstance(tag, str) and tag.lower() in SEVERITY_TAGS:
                return SEVERITY_TAGS[tag.lower()], cvss_score

        if cvss_score is not None:
            return severity_from_score(cvss_score), cvss_score

        return Severity.MEDIUM, None

    def _parse_fixed_version(self, vuln: dict) -> str | None:
        """Extract the first fixed version from an OSV record."""
        for affected in vuln.get("affected") or []:
            for rng in affected.get("ranges") or []:
                for event in rng.get("events") or []:
                    if "fixed" in event:
                        return event["fixed"]
        return None

    def _parse_references(self, vuln: dict) -> list[str]:
        """Extract reference URLs from an OSV record, in order."""
        return [ref["url"] for ref in vuln.get("references") or [] if ref.get("url")]
