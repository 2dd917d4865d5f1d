"""Analyzers for fetching and processing package data."""

from packinsight.analyzers.github import GitHubFetcher
from packinsight.analyzers.insights import InsightsGenerator
from packinsight.analyzers.llm import DescriptionGenerator
from packinsight.analyzers.pipeline import ScanPipeline, ScanStage, scan
from packinsight.analyzers.scorer import TrustScorer, calculate_trust_score
from packinsight.analyzers.vulnerabilities import VulnerabilityAggregator

__all__ = [
    "DescriptionGenerator",
    "GitHubFetcher",
    "InsightsGenerator",
    "ScanPipeline",
    "ScanStage",
    "TrustScorer",
    "VulnerabilityAggregator",
    "calculate_trust_score",
    "scan",
]
