import json

import pytest

from packinsight.analyzers.osv import OSVFetcher, severity_from_score
from packinsight.http import Ok, Unavailable
from packinsight.models.schemas import Ecosystem, PackageIdentifier, Severity

OSV_URL = "https://api.osv.dev/v1/query"


@pytest.mark.parametrize(
    "score,expected",
    [
        (9.8, Severity.CRITICAL),
        (9.0, Severity.CRITICAL),
        (8.9, Severity.HIGH),
        (7.0, Severity.HIGH),
        (6.9, Severity.MEDIUM),
        (4.0, Severity.MEDIUM),
        (3.9, Severity.LOW),
        (0.0, Severity.LOW),
    ],
)
def test_severity_from_score(score, expected):
    assert severity_from_score(score) == expected


def test_explicit_severity_tag_wins():
    vuln = OSVFetcher().parse_vulnerability(
        {
            "id": "GHSA-1",
            "severity": [{"type": "CVSS_V3", "score": "9.5"}],
            "database_specific": {"severity": "MODERATE", "cwe_ids": ["CWE-79"]},
        }
    )

    assert vuln.severity == Severity.MEDIUM
    assert vuln.cvss == 9.5
    assert vuln.cwe == ["CWE-79"]


def test_ecosystem_specific_tag_is_used():
    vuln = OSVFetcher().parse_vulnerability(
        {"id": "X-1", "affected": [{"ecosystem_specific": {"severity": "HIGH"}}]}
    )
    assert vuln.severity == Severity.HIGH


def test_numeric_score_without_tag():
    vuln = OSVFetcher().parse_vulnerability({"id": "X-2", "severity": [{"score": "7.5"}]})
    assert vuln.severity == Severity.HIGH
    assert vuln.cvss == 7.5


def test_vector_string_defaults_to_medium():
    vuln = OSVFetcher().parse_vulnerability(
        {"id": "X-3", "severity": [{"type": "CVSS_V3", "score": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H"}]}
    )
    assert vuln.severity == Severity.MEDIUM
    assert vuln.cvss is None


def test_text_defaults_and_fixed_version():
    vuln = OSVFetcher().parse_vulnerability(
        {
            "id": "X-4",
            "affected": [{"ranges": [{"events": [{"introduced": "0"}, {"fixed": "1.2.3"}]}]}],
            "references": [{"url": "https://a"}, {"type": "WEB"}, {"url": "https://b"}],
        }
    )

    assert vuln.title == "Security vulnerability"
    assert vuln.description == "No description available"
    assert vuln.fixed_in == "1.2.3"
    assert vuln.references == ["https://a", "https://b"]


@pytest.mark.asyncio
async def test_query_omits_latest_version(http, upstream):
    upstream.add(OSV_URL, json={})
    fetcher = OSVFetcher(http)

    result = await fetcher.fetch(PackageIdentifier(name="requests", ecosystem=Ecosystem.PYTHON))

    assert result == Ok([])
    body = json.loads(upstream.requests[0].content)
    assert body == {"package": {"name": "requests", "ecosystem": "PyPI"}}


@pytest.mark.asyncio
async def test_query_includes_pinned_version_and_caps_results(http, upstream):
    upstream.add(OSV_URL, json={"vulns": [{"id": f"OSV-{i}"} for i in range(15)]})
    fetcher = OSVFetcher(http)

    result = await fetcher.fetch(PackageIdentifier(name="lodash", version="4.17.0", ecosystem=Ecosystem.NPM))

    assert isinstance(result, Ok)
    assert len(result.value) == 10
    body = json.loads(upstream.requests[0].content)
    assert body["version"] == "4.17.0"
    assert body["package"]["ecosystem"] == "npm"


@pytest.mark.asyncio
async def test_server_error_is_unavailable(http, upstream):
    upstream.add(OSV_URL, json={"error": "boom"}, status=500)

    result = await OSVFetcher(http).fetch(PackageIdentifier(name="lodash", ecosystem=Ecosystem.NPM))

    assert isinstance(result, Unavailable)


@pytest.mark.asyncio
async def test_malformed_record_is_unavailable(http, upstream):
    upstream.add(OSV_URL, json={"vulns": [{"summary": "no id"}]})

    result = await OSVFetcher(http).fetch(PackageIdentifier(name="lodash", ecosystem=Ecosystem.NPM))

    assert isinstance(result, Unavailable)
