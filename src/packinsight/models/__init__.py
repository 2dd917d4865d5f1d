"""Data models and schemas."""

from packinsight.models.schemas import (
    AlternativePackage,
    DownloadStats,
    Ecosystem,
    LowTrustNotice,
    PackageAnalysis,
    PackageIdentifier,
    PackageInsights,
    PackageMetadata,
    PackageSuggestion,
    ReportSummary,
    RepositoryStats,
    ScanReport,
    Severity,
    SummaryStyle,
    TrustScore,
    TrustScoreBreakdown,
    Vulnerability,
)

__all__ = [
    "AlternativePackage",
    "DownloadStats",
    "Ecosystem",
    "LowTrustNotice",
    "PackageAnalysis",
    "PackageIdentifier",
    "PackageInsights",
    "PackageMetadata",
    "PackageSuggestion",
    "ReportSummary",
    "RepositoryStats",
    "ScanReport",
    "Severity",
    "SummaryStyle",
    "TrustScore",
    "TrustScoreBreakdown",
    "Vulnerability",
]
