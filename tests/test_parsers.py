import pytest

from packinsight.models.schemas import Ecosystem, PackageIdentifier
from packinsight.parsers import ManifestParseError, parse, resolve_format


def test_dockerfile_from_lines():
    content = "FROM nginx:1.21\nRUN echo hi\nfrom redis\n"

    assert parse(content, "docker") == [
        PackageIdentifier(name="nginx", version="1.21", ecosystem=Ecosystem.DOCKER),
        PackageIdentifier(name="redis", version="latest", ecosystem=Ecosystem.DOCKER),
    ]


def test_dockerfile_from_skips_flags():
    content = "FROM --platform=linux/amd64 node:18 AS build\nFROM --platform=$BUILDPLATFORM python\n"

    assert parse(content, "docker") == [
        PackageIdentifier(name="node", version="18", ecosystem=Ecosystem.DOCKER),
        PackageIdentifier(name="python", version="latest", ecosystem=Ecosystem.DOCKER),
    ]


def test_package_json_merges_dev_dependencies_and_strips_ranges():
    content = """
    {
        "name": "app",
        "dependencies": {"express": "^4.18.2", "lodash": "~4.17.21"},
        "devDependencies": {"jest": "29.7.0"}
    }
    """

    packages = parse(content, "package.json")

    assert [(p.name, p.version) for p in packages] == [
        ("express", "4.18.2"),
        ("lodash", "4.17.21"),
        ("jest", "29.7.0"),
    ]
    assert all(p.ecosystem == Ecosystem.NPM for p in packages)


def test_package_json_without_dependencies():
    assert parse('{"name": "empty"}', "npm") == []


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2]",
        '{"dependencies": ["lodash"]}',
        '{"dependencies": "lodash"}',
        '{"dependencies": {"lodash": "4.17.21"}, "devDependencies": ["jest"]}',
    ],
)
def test_invalid_package_json_raises(content):
    with pytest.raises(ManifestParseError) as exc:
        parse(content, "npm")
    assert str(exc.value) == "Invalid package.json format"
    assert exc.value.format_hint == "npm"


def test_requirements_txt():
    content = """
    # web
    django==4.2.1
    requests>=2.28,<3
    flask
    numpy ~= 1.26

    -r other.txt
    """

    packages = parse(content, "python")

    assert [(p.name, p.version) for p in packages] == [
        ("django", "4.2.1"),
        ("requests", "2.28"),
        ("flask", "latest"),
        ("numpy", "1.26"),
    ]
    assert all(p.ecosystem == Ecosystem.PYTHON for p in packages)


@pytest.mark.parametrize(
    "hint,expected",
    [
        ("npm", Ecosystem.NPM),
        ("package.json", Ecosystem.NPM),
        ("requirements.txt", Ecosystem.PYTHON),
        ("Dockerfile", Ecosystem.DOCKER),
        (Ecosystem.PYTHON, Ecosystem.PYTHON),
    ],
)
def test_resolve_format(hint, expected):
    assert resolve_format(hint) == expected


def test_unknown_format():
    with pytest.raises(ValueError):
        resolve_format("Gemfile")
