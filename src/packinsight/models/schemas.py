"""Pydantic models for package data."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Ecosystem(str, Enum):
    """Package ecosystems."""

    NPM = "npm"
    PYTHON = "python"
    DOCKER = "docker"


class Severity(str, Enum):
    """Normalized advisory severity."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PackageIdentifier(BaseModel):
    """A package to scan, as produced by the manifest parser."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str = "latest"  # "latest" means resolve to current
    ecosystem: Ecosystem


class Vulnerability(BaseModel):
    """A known vulnerability for a package, normalized across advisory sources."""

    id: str  # CVE-2024-1234 or GHSA-xxxx
    severity: Severity
    title: str
    description: str
    cvss: float | None = None
    cwe: list[str] = Field(default_factory=list)
    references: list[str] = Field(default_factory=list)
    fixed_in: str | None = None


class RepositoryStats(BaseModel):
    """Activity snapshot of a source repository."""

    stars: int = 0
    forks: int = 0
    watchers: int = 0
    open_issues: int = 0
    contributors: int = 0
    pull_requests: int = 0
    last_commit: str | None = None
    created_at: str | None = None
    default_branch: str | None = None
    language: str = "Unknown"
    topics: list[str] = Field(default_factory=list)


class DownloadStats(BaseModel):
    """Download counts per window.

    None means the source did not provide the window, which is not the same
    as zero downloads.
    """

    last_day: int | None = None
    last_week: int | None = None
    last_month: int | None = None
    total: int | None = None


class PackageMetadata(BaseModel):
    """Registry metadata for a package.

    Every field is optional. Which fields are populated depends on the
    ecosystem and on which registry calls succeeded.
    """

    description: str | None = None
    license: str | None = None
    author: str | None = None
    homepage: str | None = None
    repository: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    last_publish: str | None = None  # raw registry timestamp
    latest_version: str | None = None
    current_version: str | None = None
    is_deprecated: bool | None = None
    maintainers: int | None = None
    has_tests: bool | None = None
    has_security: bool | None = None
    bundle_size: str | None = None
    downloads: int | None = None  # docker: cumulative pull count
    stars: int | None = None  # docker hub stars
    registry_url: str | None = None
    github_url: str | None = None
    official_url: str | None = None


class PackageSuggestion(BaseModel):
    """Registry search result."""

    name: str
    description: str | None = None
    version: str | None = None


# --- Scoring Models ---


class TrustScoreBreakdown(BaseModel):
    """Per-dimension sub-scores, each normalized to 0-100."""

    security: int = Field(default=0, ge=0, le=100)
    maintenance: int = Field(default=0, ge=0, le=100)
    popularity: int = Field(default=0, ge=0, le=100)
    dependencies: int = Field(default=0, ge=0, le=100)


class TrustScore(BaseModel):
    """Composite trust score with its breakdown."""

    score: int = Field(ge=0, le=100)
    breakdown: TrustScoreBreakdown


# --- Final Package Analysis ---


class PackageAnalysis(BaseModel):
    """Complete analysis of a package."""

    model_config = ConfigDict(frozen=True)

    package: PackageIdentifier
    vulnerabilities: list[Vulnerability] = Field(default_factory=list)
    trust_score: int = Field(ge=0, le=100)
    trust_score_breakdown: TrustScoreBreakdown
    metadata: PackageMetadata = Field(default_factory=PackageMetadata)
    github_stats: RepositoryStats | None = None
    download_stats: DownloadStats | None = None
    ai_description: str | None = None


class ScanReport(BaseModel):
    """Summary of one scan over a manifest."""

    scan_id: str
    scan_type: Ecosystem
    file_name: str
    total_packages: int = 0
    vulnerable_packages: int = 0
    total_vulnerabilities: int = 0
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
    packages: list[PackageAnalysis] = Field(default_factory=list)
    created_at: datetime


# --- Insights ---


class AlternativePackage(BaseModel):
    """A package suggested in place of the analyzed one."""

    name: str
    reason: str
    stars: int | None = None
    downloads: int | None = None  # last month, when the registry reports it


class PackageInsights(BaseModel):
    """Version advice and recommendations for one analyzed package."""

    version_recommendation: str
    suggested_version: str | None = None
    issues_found: str | None = None
    safe_version: str | None = None
    recommendations: list[str] = Field(default_factory=list)
    alternatives: list[AlternativePackage] = Field(default_factory=list)
    recent_versions: list[str] = Field(default_factory=list)
    generated_by: str = "rules"  # "rules" or "llm"


class SummaryStyle(str, Enum):
    """Audience of a scan report summary."""

    TECHNICAL = "technical"
    FRIENDLY = "friendly"


class LowTrustNotice(BaseModel):
    """A low-trust package called out in a report summary."""

    package: str
    suggestion: str


class ReportSummary(BaseModel):
    """Plain-language summary of a scan report."""

    style: SummaryStyle
    overview: str
    critical: str
    recommendations: list[str] = Field(default_factory=list)
    low_trust: list[LowTrustNotice] = Field(default_factory=list)
