"""GitHub Security Advisory fetcher (GraphQL API)."""

import logging

from packinsight.http import FetchResult, Ok, ResilientClient, Unavailable
from packinsight.models.schemas import Ecosystem, PackageIdentifier, Severity, Vulnerability

logger = logging.getLogger(__name__)

ADVISORY_QUERY = """
query($ecosystem: SecurityAdvisoryEcosystem!, $package: String!) {
  securityVulnerabilities(first: 10, ecosystem: $ecosystem, package: $package) {
    nodes {
      advisory {
        ghsaId
        summary
        description
        severity
        cvss {
          score
        }
        cwes(first: 5) {
          nodes {
            cweId
          }
        }
        references {
          url
        }
      }
      vulnerableVersionRange
      firstPatchedVersion {
        identifier
      }
    }
  }
}
"""

# GitHub names the medium level "moderate"
ADVISORY_SEVERITY_MAP = {
    "CRITICAL": Severity.CRITICAL,
    "HIGH": Severity.HIGH,
    "MODERATE": Severity.MEDIUM,
    "MEDIUM": Severity.MEDIUM,
    "LOW": Severity.LOW,
}


class GitHubAdvisoryFetcher:
    """Fetches vulnerabilities from the GitHub Security Advisory database.

    Requires a GitHub token; without one the source is skipped. Container
    images are not covered by the advisory database.
    """

    GRAPHQL_URL = "https://api.github.com/graphql"

    # Map our ecosystem names to GitHub advisory ecosystem names
    ECOSYSTEM_MAP = {
        Ecosystem.NPM: "NPM",
        Ecosystem.PYTHON: "PIP",
        Ecosystem.DOCKER: None,
    }

    def __init__(self, http: ResilientClient | None = None, token: str | None = None) -> None:
        """Initialize the fetcher.

        Args:
            http: Resilient client used for the GraphQL request.
            token: GitHub token. The source is skipped when it is missing.
        """
        self.http = http or ResilientClient()
        self._token = token

    async def fetch(self, package: PackageIdentifier) -> FetchResult[list[Vulnerability]]:
        """Fetch the ten most relevant advisories for a package.

        Returns:
            Ok with the (possibly empty) advisory list, or Unavailable when
            the source was skipped or failed.
        """
        if not self._token:
            logger.debug("GITHUB_TOKEN not set, skipping GitHub advisories")
            return Unavailable("no GitHub token configured")

        advisory_ecosystem = self.ECOSYSTEM_MAP.get(package.ecosystem)
        if not advisory_ecosystem:
            return Unavailable(f"ecosystem {package.ecosystem.value} not covered")

        result = await self.http.post_json(
            self.GRAPHQL_URL,
            json={
                "query": ADVISORY_QUERY,
                "variables": {"ecosystem": advisory_ecosystem, "package": package.name},
            },
            headers={"Authorization": f"Bearer {self._token}"},
            max_attempts=3,
            timeout=20.0,
        )
        if not isinstance(result, Ok):
            return result

        payload = result.value if isinstance(result.value, dict) else {}
        nodes = ((payload.get("data") or {}).get("securityVulnerabilities") or {}).get("nodes")
        if nodes is None:
            errors = payload.get("errors")
            if errors:
                logger.warning(f"GitHub advisory query failed for {package.name}: {errors}")
            return Unavailable("no advisory data in response")

        try:
            return Ok([self._parse_node(node) for node in nodes if (node or {}).get("advisory")])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed advisory node for {package.name}: {e}")
            return Unavailable("malformed advisory response")

    def _parse_node(self, node: dict) -> Vulnerability:
        """Convert a securityVulnerabilities node to a Vulnerability."""
        advisory = node["advisory"]
        severity = ADVISORY_SEVERITY_MAP.get((advisory.get("severity") or "").upper(), Severity.MEDIUM)
        cwes = (advisory.get("cwes") or {}).get("nodes") or []
        patched = node.get("firstPatchedVersion") or {}

        return Vulnerability(
            id=advisory["ghsaId"],
            severity=severity,
            title=advisory.get("summary") or "Security vulnerability",
            description=advisory.get("description") or advisory.get("summary") or "",
            cvss=(advisory.get("cvss") or {}).get("score"),
            cwe=[c["cweId"] for c in cwes if c.get("cweId")],
            references=[r["url"] for r in advisory.get("references") or [] if r.get("url")],
            fixed_in=patched.get("identifier"),
        )
