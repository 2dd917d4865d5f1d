"""Trust score calculator."""

import math
from collections.abc import Mapping, Sized
from datetime import datetime, timezone

from packinsight.models.schemas import (
    DownloadStats,
    PackageMetadata,
    RepositoryStats,
    Severity,
    TrustScore,
    TrustScoreBreakdown,
    Vulnerability,
)

# (threshold, points): the first bracket whose threshold is exceeded applies
STAR_BRACKETS = ((10_000, 8), (1_000, 6), (100, 4), (10, 2))
DOWNLOAD_BRACKETS = ((1_000_000, 7), (100_000, 5), (10_000, 3), (1_000, 1))
DEPENDENCY_BRACKETS = ((100, 5), (50, 10), (20, 12))

# (minimum age in days, penalty): the first bracket reached applies
PUBLISH_AGE_PENALTIES = ((730, 15), (365, 10), (180, 5))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (12.5 -> 13)."""
    return math.floor(value + 0.5)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a registry or GitHub timestamp; None if missing or unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _bracket(value: int, brackets: tuple[tuple[int, int], ...], default: int = 0) -> int:
    for threshold, points in brackets:
        if value > threshold:
            return points
    return default


class TrustScorer:
    """Calculates the trust score from collected signals.

    Raw points (total 100):
    - Security: 40
    - Maintenance: 25
    - Popularity: 20
    - Dependencies: 15

    The score is the rounded sum of the raw points. The breakdown shows each
    dimension as a percentage of its own maximum, so the breakdown values do
    not add up to the score.
    """

    MAX_POINTS = {
        "security": 40,
        "maintenance": 25,
        "popularity": 20,
        "dependencies": 15,
    }

    # Points lost per vulnerability; low severity costs nothing
    SEVERITY_PENALTIES = {
        Severity.CRITICAL: 15,
        Severity.HIGH: 10,
        Severity.MEDIUM: 5,
        Severity.LOW: 0,
    }

    POPULARITY_BASE = 5
    RECENT_COMMIT_DAYS = 30
    RECENT_COMMIT_BONUS = 5

    def calculate(
        self,
        vulnerabilities: list[Vulnerability],
        metadata: PackageMetadata | None,
        dependencies: Mapping[str, str] | Sized | None = None,
        repo_stats: RepositoryStats | None = None,
        download_stats: DownloadStats | None = None,
        now: datetime | None = None,
    ) -> TrustScore:
        """Calculate the trust score and its breakdown.

        Args:
            vulnerabilities: Known vulnerabilities of the package.
            metadata: Registry metadata; only ``last_publish`` is used.
            dependencies: Dependency map (or any sized collection).
            repo_stats: Repository activity, if available.
            download_stats: Download counts, if available.
            now: Reference time for age calculations. Defaults to now (UTC).

        Returns:
            TrustScore with the 0-100 score and the per-dimension breakdown.
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        raw = {
            "security": self.security_points(vulnerabilities),
            "maintenance": self.maintenance_points(metadata, repo_stats, now),
            "popularity": self.popularity_points(repo_stats, download_stats),
            "dependencies": self.dependency_points(dependencies),
        }

        score = min(100, max(0, round_half_up(sum(raw.values()))))
        breakdown = TrustScoreBreakdown(
            **{name: round_half_up(points / self.MAX_POINTS[name] * 100) for name, points in raw.items()}
        )
        return TrustScore(score=score, breakdown=breakdown)

    def security_points(self, vulnerabilities: list[Vulnerability]) -> int:
        """40 minus severity penalties, floored at 0."""
        penalty = sum(self.SEVERITY_PENALTIES[v.severity] for v in vulnerabilities)
        return min(self.MAX_POINTS["security"], max(0, self.MAX_POINTS["security"] - penalty))

    def maintenance_points(
        self,
        metadata: PackageMetadata | None,
        repo_stats: RepositoryStats | None,
        now: datetime,
    ) -> int:
        """25 minus a publish-age penalty, plus a bonus for a recent commit.

        Missing or unparseable dates leave the points unchanged.
        """
        points = self.MAX_POINTS["maintenance"]

        last_publish = parse_timestamp(metadata.last_publish if metadata else None)
        if last_publish:
            days_since_publish = (now - last_publish).total_seconds() / 86400
            for min_days, penalty in PUBLISH_AGE_PENALTIES:
                if days_since_publish >= min_days:
                    points -= penalty
                    break

        last_commit = parse_timestamp(repo_stats.last_commit if repo_stats else None)
        if last_commit:
            days_since_commit = (now - last_commit).total_seconds() / 86400
            if days_since_commit < self.RECENT_COMMIT_DAYS:
                points += self.RECENT_COMMIT_BONUS

        return min(self.MAX_POINTS["maintenance"], max(0, points))

    def popularity_points(
        self,
        repo_stats: RepositoryStats | None,
        download_stats: DownloadStats | None,
    ) -> int:
        """Base 5, plus one star bracket and one monthly-download bracket."""
        points = self.POPULARITY_BASE
        if repo_stats and repo_stats.stars:
            points += _bracket(repo_stats.stars, STAR_BRACKETS)
        if download_stats and download_stats.last_month:
            points += _bracket(download_stats.last_month, DOWNLOAD_BRACKETS)
        return min(self.MAX_POINTS["popularity"], max(0, points))

    def dependency_points(self, dependencies: Mapping[str, str] | Sized | None) -> int:
        """Fewer direct dependencies score higher."""
        count = len(dependencies) if dependencies else 0
        return _bracket(count, DEPENDENCY_BRACKETS, default=self.MAX_POINTS["dependencies"])


def calculate_trust_score(
    vulnerabilities: list[Vulnerability],
    metadata: PackageMetadata | None,
    dependencies: Mapping[str, str] | Sized | None = None,
    repo_stats: RepositoryStats | None = None,
    download_stats: DownloadStats | None = None,
    *,
    now: datetime | None = None,
) -> TrustScore:
    """Calculate a trust score without fetching anything.

    Usable on its own by callers that already hold the inputs, for example
    to re-score after a metadata refresh.
    """
    return TrustScorer().calculate(
        vulnerabilities, metadata, dependencies, repo_stats, download_stats, now=now
    )
