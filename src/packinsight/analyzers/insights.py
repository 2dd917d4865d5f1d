"""Version advice, alternatives and recommendations for an analyzed package."""

import asyncio
import json
import logging
import re

from packinsight.adapters import ECOSYSTEM_ADAPTERS, BaseAdapter, NpmAdapter
from packinsight.analyzers.llm import DescriptionGenerator
from packinsight.http import ResilientClient
from packinsight.models.schemas import (
    AlternativePackage,
    Ecosystem,
    PackageAnalysis,
    PackageInsights,
    Severity,
)

logger = logging.getLogger(__name__)

MAX_VERSIONS = 10
MAX_ALTERNATIVES = 3
LOW_TRUST_THRESHOLD = 60
BUSY_ISSUE_TRACKER = 50

PYTHON_ALTERNATIVES = {
    "django": ["flask", "fastapi", "pyramid"],
    "flask": ["django", "fastapi", "bottle"],
    "requests": ["httpx", "aiohttp", "urllib3"],
    "numpy": ["cupy", "jax", "dask"],
    "pandas": ["polars", "dask", "modin"],
    "pytest": ["unittest", "nose2", "testify"],
}

DOCKER_ALTERNATIVES = {
    "nginx": ["apache", "caddy", "traefik"],
    "node": ["node-alpine", "bun", "deno"],
    "python": ["python-alpine", "python-slim", "pypy"],
    "postgres": ["postgresql", "timescaledb", "cockroachdb"],
    "redis": ["valkey", "dragonfly", "memcached"],
    "mysql": ["mariadb", "percona", "postgres"],
}

DEFAULT_RECOMMENDATIONS = [
    "Keep the package updated to the latest version",
    "Monitor security advisories regularly",
    "Review dependencies for vulnerabilities",
]

SYSTEM_PROMPT = (
    "You are a package security expert. Provide specific, actionable insights "
    "with version numbers. Return valid JSON only."
)


def extract_json(text: str) -> dict:
    """Parse the JSON object in a model reply, tolerating code fences and prose.

    Raises:
        ValueError: If no JSON object can be parsed.
    """
    fenced = re.search(r"```(?:json)?\s*\n?(.*?)\n?```", text, re.DOTALL)
    if fenced:
        text = fenced.group(1)
    obj = re.search(r"\{.*\}", text, re.DOTALL)
    if obj:
        text = obj.group(0)

    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Model reply is not a JSON object")
    return data


def _severe(analysis: PackageAnalysis) -> list:
    return [v for v in analysis.vulnerabilities if v.severity in (Severity.CRITICAL, Severity.HIGH)]


class InsightsGenerator:
    """Builds PackageInsights for one analyzed package.

    Recommendations come from a chat-completions model when one is
    configured and answers with usable JSON; otherwise a fixed rule set
    produces them from the analysis alone.
    """

    def __init__(
        self,
        adapters: dict[Ecosystem, BaseAdapter] | None = None,
        llm: DescriptionGenerator | None = None,
        http: ResilientClient | None = None,
    ) -> None:
        http = http or ResilientClient()
        self.adapters = adapters or {
            ecosystem: adapter_class(http) for ecosystem, adapter_class in ECOSYSTEM_ADAPTERS.items()
        }
        self.llm = llm

    async def fetch_versions(self, analysis: PackageAnalysis) -> list[str]:
        """Up to ten published versions, newest first."""
        package = analysis.package
        return await self.adapters[package.ecosystem].list_versions(package.name, limit=MAX_VERSIONS)

    async def find_alternatives(self, analysis: PackageAnalysis) -> list[AlternativePackage]:
        """Up to three packages that could replace the analyzed one.

        npm alternatives come from a registry search on the first
        dash-separated word of the name, with their monthly downloads.
        Python and Docker use a fixed table of well-known replacements.
        """
        package = analysis.package
        if package.ecosystem == Ecosystem.PYTHON:
            names = PYTHON_ALTERNATIVES.get(package.name.lower(), [])
            return [AlternativePackage(name=n, reason=f"Popular alternative to {package.name}") for n in names]
        if package.ecosystem == Ecosystem.DOCKER:
            names = DOCKER_ALTERNATIVES.get(package.name.lower(), [])
            return [AlternativePackage(name=n, reason=f"Alternative to {package.name}") for n in names]

        adapter = self.adapters[Ecosystem.NPM]
        search_term = package.name.split("-")[0]
        suggestions = await adapter.search(search_term, limit=5)
        candidates = [s for s in suggestions if s.name != package.name][:MAX_ALTERNATIVES]

        downloads: list[int | None] = [None] * len(candidates)
        if isinstance(adapter, NpmAdapter):
            downloads = await asyncio.gather(*(adapter.monthly_downloads(s.name) for s in candidates))

        return [
            AlternativePackage(
                name=s.name,
                reason=s.description or "Alternative package",
                downloads=count,
            )
            for s, count in zip(candidates, downloads)
        ]

    def rule_based_insights(
        self,
        analysis: PackageAnalysis,
        alternatives: list[AlternativePackage],
        versions: list[str] | None = None,
    ) -> PackageInsights:
        """Insights derived from the analysis without a model."""
        metadata = analysis.metadata
        current = metadata.current_version or analysis.package.version
        latest = metadata.latest_version or metadata.current_version
        recommendations = []

        suggested_version = None
        if latest and latest != current:
            version_recommendation = (
                f"A newer version ({latest}) is available. "
                "Consider upgrading to benefit from bug fixes and improvements."
            )
            suggested_version = latest
        else:
            version_recommendation = (
                f"You're using the latest version ({current}). Stay updated with security patches."
            )

        issues_found = None
        safe_version = None
        severe = _severe(analysis)
        if severe:
            issues_found = f"{len(severe)} critical/high severity vulnerabilities found in current version."
            fixed = [v.fixed_in for v in severe if v.fixed_in]
            if fixed:
                safe_version = fixed[0]
                recommendations.append(f"Upgrade to version {safe_version} or later to fix security vulnerabilities")

        if analysis.trust_score < LOW_TRUST_THRESHOLD:
            recommendations.append("Consider alternatives due to low trust score")
            if analysis.github_stats and analysis.github_stats.open_issues > BUSY_ISSUE_TRACKER:
                recommendations.append(f"Monitor the {analysis.github_stats.open_issues} open issues on GitHub")

        if metadata.is_deprecated:
            recommendations.append("This package is deprecated. Plan migration to an alternative")

        return PackageInsights(
            version_recommendation=version_recommendation,
            suggested_version=suggested_version,
            issues_found=issues_found,
            safe_version=safe_version,
            recommendations=recommendations or list(DEFAULT_RECOMMENDATIONS),
            alternatives=alternatives[:MAX_ALTERNATIVES],
            recent_versions=versions or [],
        )

    def build_prompt(
        self,
        analysis: PackageAnalysis,
        alternatives: list[AlternativePackage],
        versions: list[str],
    ) -> str:
        metadata = analysis.metadata
        stats = analysis.github_stats
        downloads = (analysis.download_stats.last_month if analysis.download_stats else None) or 0
        alternatives_json = json.dumps([a.model_dump(exclude_none=True) for a in alternatives])

        return f"""Analyze this {analysis.package.ecosystem.value} package and provide personalized insights:

Package: {analysis.package.name}
Current Version: {metadata.current_version or analysis.package.version}
Latest Version: {metadata.latest_version or metadata.current_version}
Recent Versions: {', '.join(versions[:5])}
Trust Score: {analysis.trust_score}/100
Vulnerabilities: {len(analysis.vulnerabilities)} ({len(_severe(analysis))} critical/high)
Stars: {stats.stars if stats else 0}
Monthly Downloads: {downloads}
Open Issues: {stats.open_issues if stats else 0}
Deprecated: {bool(metadata.is_deprecated)}

Generate a JSON response with:
1. versionRecommendation: Suggest upgrading to newer version if beneficial (mention specific version number)
2. suggestedVersion: The specific version number recommended (if applicable)
3. issuesFound: Warn about known issues with latest version if trust score is low or many vulnerabilities exist
4. safeVersion: Suggest a stable older version if newer one has issues (specific version number)
5. recommendations: Array of 2-3 specific actionable recommendations for THIS package
6. alternatives: Use these alternatives: {alternatives_json}

Be specific, mention actual version numbers, and personalize advice based on the package's stats."""

    async def llm_insights(
        self,
        analysis: PackageAnalysis,
        alternatives: list[AlternativePackage],
        versions: list[str],
    ) -> PackageInsights | None:
        """Insights written by the model, or None if it gave nothing usable.

        The model may reword the alternatives' reasons but not replace the
        fetched alternatives themselves.
        """
        if self.llm is None or not self.llm.enabled:
            return None

        content = await self.llm.chat(
            SYSTEM_PROMPT,
            self.build_prompt(analysis, alternatives, versions),
            max_tokens=800,
            json_mode=True,
        )
        if not content:
            return None
        try:
            data = extract_json(content)
        except ValueError:
            logger.warning(f"Model returned malformed insights for {analysis.package.name}")
            return None
        if not isinstance(data.get("versionRecommendation"), str):
            return None

        reworded = data.get("alternatives") if isinstance(data.get("alternatives"), list) else []
        merged = []
        for i, alternative in enumerate(alternatives):
            suggestion = reworded[i] if i < len(reworded) and isinstance(reworded[i], dict) else {}
            reason = suggestion.get("reason")
            if isinstance(reason, str) and reason:
                alternative = alternative.model_copy(update={"reason": reason})
            merged.append(alternative)

        def text(key: str) -> str | None:
            value = data.get(key)
            return str(value) if isinstance(value, (str, int, float)) and value != "" else None

        recommendations = data.get("recommendations")
        if not isinstance(recommendations, list):
            recommendations = []
        return PackageInsights(
            version_recommendation=data["versionRecommendation"],
            suggested_version=text("suggestedVersion"),
            issues_found=text("issuesFound"),
            safe_version=text("safeVersion"),
            recommendations=[r for r in recommendations if isinstance(r, str)],
            alternatives=merged,
            recent_versions=versions,
            generated_by="llm",
        )

    async def generate(self, analysis: PackageAnalysis, use_llm: bool = True) -> PackageInsights:
        """Versions, alternatives and recommendations for an analyzed package.

        Args:
            analysis: Completed package analysis.
            use_llm: Ask the model first when one is configured.

        Returns:
            Model-written insights, or rule-based ones when the model is
            disabled or fails.
        """
        versions, alternatives = await asyncio.gather(
            self.fetch_versions(analysis),
            self.find_alternatives(analysis),
        )
        alternatives = alternatives[:MAX_ALTERNATIVES]

        if use_llm:
            insights = await self.llm_insights(analysis, alternatives, versions)
            if insights is not None:
                return insights
            logger.debug(f"Using rule-based insights for {analysis.package.name}")

        return self.rule_based_insights(analysis, alternatives, versions)
