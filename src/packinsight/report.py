"""Scan report aggregation."""

import time
import uuid
from datetime import datetime, timezone

from packinsight.models.schemas import (
    Ecosystem,
    LowTrustNotice,
    PackageAnalysis,
    ReportSummary,
    ScanReport,
    Severity,
    SummaryStyle,
)


def new_scan_id() -> str:
    """Scan id of the form ``scan_<epoch ms>_<random>``."""
    return f"scan_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def build_report(
    scan_type: Ecosystem,
    file_name: str,
    packages: list[PackageAnalysis],
    scan_id: str | None = None,
    created_at: datetime | None = None,
) -> ScanReport:
    """Summarize analyzed packages into a ScanReport.

    Args:
        scan_type: Ecosystem of the scanned manifest.
        file_name: Name of the scanned manifest.
        packages: Analyses in scan order.
        scan_id: Explicit scan id. Generated when omitted.
        created_at: Report time. Defaults to now (UTC).

    Returns:
        ScanReport with per-severity counts over all packages.
    """
    counts = {severity: 0 for severity in Severity}
    for analysis in packages:
        for vuln in analysis.vulnerabilities:
            counts[vuln.severity] += 1

    return ScanReport(
        scan_id=scan_id or new_scan_id(),
        scan_type=scan_type,
        file_name=file_name,
        total_packages=len(packages),
        vulnerable_packages=sum(1 for p in packages if p.vulnerabilities),
        total_vulnerabilities=sum(counts.values()),
        critical_count=counts[Severity.CRITICAL],
        high_count=counts[Severity.HIGH],
        medium_count=counts[Severity.MEDIUM],
        low_count=counts[Severity.LOW],
        packages=packages,
        created_at=created_at or datetime.now(timezone.utc),
    )


SUMMARY_LOW_TRUST_THRESHOLD = 50
SUMMARY_LOW_TRUST_LIMIT = 3

TECHNICAL_RECOMMENDATIONS = [
    "Update all packages with critical vulnerabilities immediately",
    "Review and patch high-severity issues within 48 hours",
    "Implement automated dependency scanning in CI/CD pipeline",
    "Consider alternative packages for those with poor trust scores",
]

FRIENDLY_RECOMMENDATIONS = [
    "Update your vulnerable packages to the latest versions",
    "Set up automatic security alerts for your project",
    "Review the security best practices for your dependencies",
    "Regular security scans help keep your project safe",
]


def summarize_report(report: ScanReport, style: SummaryStyle = SummaryStyle.TECHNICAL) -> ReportSummary:
    """Plain-language summary of a scan report.

    The technical style speaks to engineers; the friendly style to
    everyone else. Both call out up to three packages scoring below 50.
    """
    low_trust = [p for p in report.packages if p.trust_score < SUMMARY_LOW_TRUST_THRESHOLD]
    low_trust = low_trust[:SUMMARY_LOW_TRUST_LIMIT]

    if style == SummaryStyle.TECHNICAL:
        return ReportSummary(
            style=style,
            overview=(
                "Technical Analysis Report\n\n"
                f"Scanned {report.total_packages} packages with {report.total_vulnerabilities} "
                f"vulnerabilities detected across {report.vulnerable_packages} packages."
            ),
            critical=(
                f"Found {report.critical_count} critical vulnerabilities requiring immediate attention. "
                "These pose severe security risks."
            ),
            recommendations=list(TECHNICAL_RECOMMENDATIONS),
            low_trust=[
                LowTrustNotice(
                    package=p.package.name,
                    suggestion="Consider migrating to more secure alternatives with better maintenance records",
                )
                for p in low_trust
            ],
        )

    if report.critical_count > 0:
        critical = (
            f"{report.critical_count} critical security issues found! "
            "These are serious and should be fixed right away."
        )
    else:
        critical = "Great news! No critical security issues found."

    return ReportSummary(
        style=style,
        overview=(
            "Package Security Report\n\n"
            f"We checked {report.total_packages} packages in your project and found some "
            "security concerns that need your attention."
        ),
        critical=critical,
        recommendations=list(FRIENDLY_RECOMMENDATIONS),
        low_trust=[
            LowTrustNotice(
                package=p.package.name,
                suggestion=(
                    "This package has a low trust score. "
                    "You might want to look for better maintained alternatives."
                ),
            )
            for p in low_trust
        ],
    )
