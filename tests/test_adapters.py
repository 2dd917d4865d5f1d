import pytest

from packinsight.adapters import DockerHubAdapter, NpmAdapter, PyPiAdapter, get_adapter
from packinsight.adapters.base import normalize_repo_url, parse_github_repo
from packinsight.models.schemas import DownloadStats, Ecosystem, PackageMetadata

NPM_LODASH = "https://registry.npmjs.org/lodash"
BUNDLEPHOBIA = "https://bundlephobia.com/api/size"
NPM_DOWNLOADS = "https://api.npmjs.org/downloads/point/{period}/lodash"
PYPI_DJANGO = "https://pypi.org/pypi/Django/json"
PYPISTATS_DJANGO = "https://pypistats.org/api/packages/django/recent"
HUB_NGINX = "https://hub.docker.com/v2/repositories/library/nginx"


@pytest.mark.parametrize(
    "repository,expected",
    [
        ({"type": "git", "url": "git+https://github.com/lodash/lodash.git"}, "https://github.com/lodash/lodash"),
        ("git://github.com/expressjs/express.git", "https://github.com/expressjs/express"),
        ("github:facebook/react", "https://github.com/facebook/react"),
        ("https://github.com/psf/requests", "https://github.com/psf/requests"),
        ({"type": "git"}, None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_repo_url(repository, expected):
    assert normalize_repo_url(repository) == expected


def test_parse_github_repo():
    assert parse_github_repo("https://github.com/lodash/lodash") == ("lodash", "lodash")
    assert parse_github_repo("git@github.com:psf/requests.git") == ("psf", "requests")
    assert parse_github_repo("https://gitlab.com/group/project") is None
    assert parse_github_repo(None) is None


def test_get_adapter():
    assert isinstance(get_adapter("npm"), NpmAdapter)
    assert isinstance(get_adapter(Ecosystem.PYTHON), PyPiAdapter)
    assert isinstance(get_adapter("docker"), DockerHubAdapter)
    with pytest.raises(ValueError):
        get_adapter("cargo")


def _lodash_document():
    return {
        "name": "lodash",
        "description": "Lodash modular utilities.",
        "dist-tags": {"latest": "4.17.21"},
        "license": "MIT",
        "author": {"name": "John-David Dalton"},
        "homepage": "https://lodash.com/",
        "repository": {"type": "git", "url": "git+https://github.com/lodash/lodash.git"},
        "maintainers": [{"name": "a"}, {"name": "b"}],
        "time": {
            "modified": "2024-01-01T00:00:00.000Z",
            "4.17.20": "2020-08-13T16:53:54.152Z",
            "4.17.21": "2021-02-20T15:42:16.891Z",
        },
        "versions": {
            "4.17.20": {"dependencies": {}, "scripts": {}},
            "4.17.21": {
                "dependencies": {"a": "^1.0.0", "b": "^2.0.0"},
                "scripts": {"test": "jest"},
            },
        },
    }


@pytest.mark.asyncio
async def test_npm_metadata_for_published_version(http, upstream):
    upstream.add(NPM_LODASH, json=_lodash_document())
    upstream.add(BUNDLEPHOBIA, json={"size": 25000})

    metadata = await NpmAdapter(http).get_package_metadata("lodash", "4.17.20")

    assert metadata.current_version == "4.17.20"
    assert metadata.latest_version == "4.17.21"
    assert metadata.last_publish == "2020-08-13T16:53:54.152Z"
    assert metadata.dependencies == {}
    assert metadata.has_tests is False
    assert metadata.repository == "https://github.com/lodash/lodash"
    assert metadata.author == "John-David Dalton"
    assert metadata.license == "MIT"
    assert metadata.maintainers == 2
    assert metadata.bundle_size == "24.4 KB"
    assert metadata.registry_url == "https://www.npmjs.com/package/lodash"


@pytest.mark.asyncio
async def test_npm_unknown_version_falls_back_to_latest_record(http, upstream):
    upstream.add(NPM_LODASH, json=_lodash_document())

    metadata = await NpmAdapter(http).get_package_metadata("lodash", "latest")

    assert metadata.current_version == "latest"
    assert metadata.dependencies == {"a": "^1.0.0", "b": "^2.0.0"}
    assert metadata.has_tests is True
    assert metadata.last_publish == "2024-01-01T00:00:00.000Z"
    # bundlephobia answered 404
    assert metadata.bundle_size is None


@pytest.mark.asyncio
async def test_npm_unreachable_registry_gives_empty_metadata(http, upstream):
    upstream.fail(NPM_LODASH)

    metadata = await NpmAdapter(http).get_package_metadata("lodash", "latest")

    assert metadata == PackageMetadata()


@pytest.mark.asyncio
async def test_npm_download_windows_fail_independently(http, upstream):
    upstream.add(NPM_DOWNLOADS.format(period="last-day"), json={"downloads": 100})
    upstream.fail(NPM_DOWNLOADS.format(period="last-week"))
    upstream.add(NPM_DOWNLOADS.format(period="last-month"), json={"downloads": 3000})

    stats = await NpmAdapter(http).get_download_stats("lodash")

    assert stats == DownloadStats(last_day=100, last_week=0, last_month=3000)
    assert len(upstream.calls(NPM_DOWNLOADS.format(period="last-week"))) == 2


@pytest.mark.asyncio
async def test_npm_search(http, upstream):
    upstream.add(
        "https://registry.npmjs.org/-/v1/search",
        json={
            "objects": [
                {"package": {"name": "react", "description": "UI", "version": "18.2.0"}},
                {"package": {"description": "no name"}},
            ]
        },
    )
    adapter = NpmAdapter(http)

    suggestions = await adapter.search("rea")

    assert [s.name for s in suggestions] == ["react"]
    assert await adapter.search("r") == []


def _django_document():
    return {
        "info": {
            "name": "Django",
            "summary": "A high-level Python web framework.",
            "version": "5.0.1",
            "license": "BSD-3-Clause",
            "author": "Django Software Foundation",
            "maintainer": "",
            "home_page": "https://www.djangoproject.com/",
            "project_urls": {
                "Homepage": "https://www.djangoproject.com/",
                "Source": "https://github.com/django/django",
            },
        },
        "releases": {"5.0.1": [{"upload_time": "2024-01-02T10:00:00"}]},
    }


@pytest.mark.asyncio
async def test_pypi_current_version_is_always_latest(http, upstream):
    upstream.add(PYPI_DJANGO, json=_django_document())

    metadata = await PyPiAdapter(http).get_package_metadata("Django", "3.2.0")

    # the JSON endpoint only describes the newest release
    assert metadata.current_version == "5.0.1"
    assert metadata.latest_version == "5.0.1"
    assert metadata.last_publish == "2024-01-02T10:00:00"
    assert metadata.repository == "https://github.com/django/django"
    assert metadata.maintainers == 0
    assert metadata.dependencies == {}


@pytest.mark.asyncio
async def test_pypi_download_stats(http, upstream):
    upstream.add(PYPISTATS_DJANGO, json={"data": {"last_day": 1, "last_week": 7, "last_month": 30}})

    stats = await PyPiAdapter(http).get_download_stats("Django")

    assert stats == DownloadStats(last_day=1, last_week=7, last_month=30)


@pytest.mark.asyncio
async def test_pypi_missing_stats_are_absent_not_zero(http, upstream):
    stats = await PyPiAdapter(http).get_download_stats("Django")

    assert stats.last_month is None
    assert stats == DownloadStats()


@pytest.mark.asyncio
async def test_pypi_partial_stats_keep_missing_windows_absent(http, upstream):
    upstream.add(PYPISTATS_DJANGO, json={"data": {"last_month": 100}})

    stats = await PyPiAdapter(http).get_download_stats("Django")

    assert stats.last_month == 100
    assert stats.last_day is None
    assert stats.last_week is None


@pytest.mark.asyncio
async def test_pypi_search_offers_variations(http, upstream):
    upstream.add("https://pypi.org/pypi/requests/json", json={"info": {"name": "requests", "version": "2.31.0"}})

    suggestions = await PyPiAdapter(http).search("requests")

    assert [s.name for s in suggestions] == [
        "requests",
        "requests2",
        "requests3",
        "python-requests",
        "requests-python",
    ]
    assert suggestions[0].version == "2.31.0"


def test_docker_repository_path():
    adapter = DockerHubAdapter()
    assert adapter.repository_path("nginx") == "library/nginx"
    assert adapter.repository_path("bitnami/redis") == "bitnami/redis"


@pytest.mark.asyncio
async def test_docker_metadata(http, upstream):
    upstream.add(
        HUB_NGINX,
        json={
            "user": "library",
            "description": "Official build of Nginx.",
            "star_count": 20000,
            "pull_count": 1_000_000_000,
            "last_updated": "2024-05-01T00:00:00.000000Z",
        },
    )
    upstream.add(f"{HUB_NGINX}/tags", json={"results": [{"full_size": 70 * 1024 * 1024}]})

    adapter = DockerHubAdapter(http)
    metadata = await adapter.get_package_metadata("nginx", "1.21")

    assert metadata.stars == 20000
    assert metadata.downloads == 1_000_000_000
    assert metadata.author == "library"
    assert metadata.bundle_size == "70.0 MB"
    assert metadata.registry_url == "https://hub.docker.com/r/nginx"
    assert await adapter.get_download_stats("nginx") is None


@pytest.mark.asyncio
async def test_list_versions_newest_first(http, upstream):
    upstream.add(NPM_LODASH, json=_lodash_document())
    upstream.add(
        PYPI_DJANGO,
        json={"releases": {f"4.{i}": [] for i in range(12)}},
    )

    assert await NpmAdapter(http).list_versions("lodash") == ["4.17.21", "4.17.20"]
    django_versions = await PyPiAdapter(http).list_versions("Django")
    assert django_versions == [f"4.{i}" for i in range(11, 1, -1)]
    assert await DockerHubAdapter(http).list_versions("nginx") == []


@pytest.mark.asyncio
async def test_list_versions_unreachable_registry(http, upstream):
    upstream.fail(NPM_LODASH)

    assert await NpmAdapter(http).list_versions("lodash") == []
    assert await PyPiAdapter(http).list_versions("Django") == []


@pytest.mark.asyncio
async def test_npm_monthly_downloads(http, upstream):
    upstream.add(NPM_DOWNLOADS.format(period="last-month"), json={"downloads": 42})

    adapter = NpmAdapter(http)

    assert await adapter.monthly_downloads("lodash") == 42
    assert await adapter.monthly_downloads("left-pad") is None
