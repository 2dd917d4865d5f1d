"""End-to-end scan pipeline for packages."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

import httpx

from packinsight.adapters import ECOSYSTEM_ADAPTERS, BaseAdapter
from packinsight.analyzers.github import GitHubFetcher
from packinsight.analyzers.llm import DescriptionGenerator
from packinsight.analyzers.scorer import TrustScorer
from packinsight.analyzers.vulnerabilities import VulnerabilityAggregator
from packinsight.config import Settings
from packinsight.http import ResilientClient
from packinsight.models.schemas import (
    Ecosystem,
    PackageAnalysis,
    PackageIdentifier,
    PackageMetadata,
    TrustScoreBreakdown,
)

logger = logging.getLogger(__name__)

ANALYSIS_ERROR_DESCRIPTION = "Error during analysis"
ANALYSIS_ERROR_AI_DESCRIPTION = "Unable to generate description due to analysis error"


class ScanStage(str, Enum):
    """Stages a package goes through during a scan."""

    PENDING = "pending"
    FETCHING_METADATA = "fetching-metadata"
    FETCHING_STATS = "fetching-stats"
    FETCHING_VULNERABILITIES = "fetching-vulnerabilities"
    SCORING = "scoring"
    DONE = "done"
    FAILED = "failed"


async def gather_or_cancel(*aws: Awaitable) -> list:
    """Run awaitables concurrently; if one fails, cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


@dataclass
class StageTracker:
    """Records the stages one package has passed through."""

    package: PackageIdentifier
    history: list[ScanStage] = field(default_factory=lambda: [ScanStage.PENDING])

    @property
    def stage(self) -> ScanStage:
        return self.history[-1]

    def advance(self, stage: ScanStage) -> None:
        logger.debug(f"{self.package.ecosystem.value}/{self.package.name}: {stage.value}")
        self.history.append(stage)


class ScanPipeline:
    """Orchestrates the analysis of a list of packages.

    Pipeline stages per package:
    1. Fetch registry metadata and download stats (concurrently)
    2. Fetch repository stats (if the metadata names a GitHub repository)
    3. Fetch vulnerabilities from the advisory sources
    4. Calculate the trust score and describe the package

    Packages are processed one at a time in input order. A package whose
    analysis fails gets a zero-score record; the rest of the batch is
    unaffected.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        adapters: dict[Ecosystem, BaseAdapter] | None = None,
        github: GitHubFetcher | None = None,
        vulnerabilities: VulnerabilityAggregator | None = None,
        describer: DescriptionGenerator | None = None,
        scorer: TrustScorer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Credentials and tunables. Defaults to empty settings.
            client: Optional httpx client shared by every fetcher.
            adapters: Registry adapters by ecosystem. Defaults to one per ecosystem.
            github: Repository stats fetcher.
            vulnerabilities: Vulnerability aggregator.
            describer: Package description generator.
            scorer: Trust score calculator.
            clock: Returns the reference time used for scoring.
        """
        self.settings = settings or Settings()
        self.http = ResilientClient(client, base_delay=self.settings.retry_base_delay)
        self.adapters = adapters or {
            ecosystem: adapter_class(self.http)
            for ecosystem, adapter_class in ECOSYSTEM_ADAPTERS.items()
        }
        self.github = github or GitHubFetcher(self.http, token=self.settings.github_token)
        self.vulnerabilities = vulnerabilities or VulnerabilityAggregator(
            self.http, github_token=self.settings.github_token
        )
        self.describer = describer or DescriptionGenerator(
            api_key=self.settings.llm_api_key,
            url=self.settings.llm_url,
            model=self.settings.llm_model,
            http=self.http,
        )
        self.scorer = scorer or TrustScorer()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def __aenter__(self) -> "ScanPipeline":
        """Set up shared HTTP client."""
        await self.http.__aenter__()
        return self

    async def __aexit__(self, *args) -> None:
        """Clean up HTTP client."""
        await self.http.__aexit__(*args)

    async def analyze_package(
        self,
        package: PackageIdentifier,
        tracker: StageTracker | None = None,
    ) -> PackageAnalysis:
        """Run the full analysis of a single package.

        Args:
            package: Package to analyze.
            tracker: Receives stage transitions.

        Returns:
            Complete PackageAnalysis.
        """
        tracker = tracker or StageTracker(package)
        adapter = self.adapters[package.ecosystem]

        # Stage 1: registry metadata and downloads
        tracker.advance(ScanStage.FETCHING_METADATA)
        metadata, download_stats = await gather_or_cancel(
            adapter.get_package_metadata(package.name, package.version),
            adapter.get_download_stats(package.name),
        )

        # Stage 2: repository activity
        tracker.advance(ScanStage.FETCHING_STATS)
        github_stats = None
        if metadata.repository:
            github_stats = await self.github.fetch_repo_stats(metadata.repository)
            if github_stats:
                metadata = metadata.model_copy(update={"has_security": "security" in github_stats.topics})

        # Stage 3: vulnerabilities
        tracker.advance(ScanStage.FETCHING_VULNERABILITIES)
        vulnerabilities = await self.vulnerabilities.fetch_vulnerabilities(package)

        # Stage 4: score and describe
        tracker.advance(ScanStage.SCORING)
        trust = self.scorer.calculate(
            vulnerabilities,
            metadata,
            metadata.dependencies,
            github_stats,
            download_stats,
            now=self.clock(),
        )
        ai_description = await self.describer.describe(
            package.name, package.ecosystem, metadata, github_stats
        )

        tracker.advance(ScanStage.DONE)
        return PackageAnalysis(
            package=package,
            vulnerabilities=vulnerabilities,
            trust_score=trust.score,
            trust_score_breakdown=trust.breakdown,
            metadata=metadata,
            github_stats=github_stats,
            download_stats=download_stats,
            ai_description=ai_description,
        )

    def degraded_analysis(self, package: PackageIdentifier) -> PackageAnalysis:
        """Zero-score record for a package whose analysis failed."""
        return PackageAnalysis(
            package=package,
            vulnerabilities=[],
            trust_score=0,
            trust_score_breakdown=TrustScoreBreakdown(),
            metadata=PackageMetadata(description=ANALYSIS_ERROR_DESCRIPTION),
            ai_description=ANALYSIS_ERROR_AI_DESCRIPTION,
        )

    async def scan(
        self,
        packages: list[PackageIdentifier],
        progress_callback: Callable[[int, int, PackageIdentifier], None] | None = None,
    ) -> list[PackageAnalysis]:
        """Analyze packages in order.

        Never raises for a single package: failures produce degraded records,
        so the result always has one entry per input package, in input order.

        Args:
            packages: Packages to analyze.
            progress_callback: Optional callback(current, total, package).

        Returns:
            One PackageAnalysis per input package.
        """
        total = len(packages)
        results = []
        logger.info(f"Starting scan of {total} packages")

        for i, package in enumerate(packages):
            if progress_callback:
                progress_callback(i + 1, total, package)

            tracker = StageTracker(package)
            try:
                analysis = await self.analyze_package(package, tracker)
            except Exception:
                logger.exception(
                    f"Error analyzing {package.ecosystem.value}/{package.name} during {tracker.stage.value}"
                )
                tracker.advance(ScanStage.FAILED)
                analysis = self.degraded_analysis(package)
            results.append(analysis)

        logger.info(f"Scan complete, analyzed {len(results)} packages")
        return results


async def scan(
    packages: list[PackageIdentifier],
    settings: Settings | None = None,
) -> list[PackageAnalysis]:
    """Scan packages with a pipeline that lives for this call only."""
    async with ScanPipeline(settings) as pipeline:
        return await pipeline.scan(packages)
