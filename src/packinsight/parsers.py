"""Manifest parsers that turn dependency files into package identifiers."""

import json
import re

from packinsight.models.schemas import Ecosystem, PackageIdentifier

REQUIREMENT_PATTERN = re.compile(r"^([a-zA-Z0-9\-_.]+)\s*([=<>!~]=?)\s*(.+)$")
BARE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\-_.]+$")
FROM_PATTERN = re.compile(r"^FROM\s+(?:--\S+\s+)*([^:\s]+):?(\S*)", re.IGNORECASE)

# File names accepted as format hints, in addition to the ecosystem names
FORMAT_ALIASES = {
    "package.json": Ecosystem.NPM,
    "requirements.txt": Ecosystem.PYTHON,
    "dockerfile": Ecosystem.DOCKER,
}


class ManifestParseError(Exception):
    """Raised when a manifest is structurally invalid."""

    def __init__(self, format_hint: str, message: str) -> None:
        self.format_hint = format_hint
        super().__init__(message)


def parse_package_json(content: str) -> list[PackageIdentifier]:
    """Parse dependencies and devDependencies from a package.json.

    Raises:
        ManifestParseError: If the content is not a JSON object, or a dependency
            section is not an object.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ManifestParseError("npm", "Invalid package.json format") from e
    if not isinstance(data, dict):
        raise ManifestParseError("npm", "Invalid package.json format")

    sections = [data.get("dependencies") or {}, data.get("devDependencies") or {}]
    if not all(isinstance(section, dict) for section in sections):
        raise ManifestParseError("npm", "Invalid package.json format")

    deps = {**sections[0], **sections[1]}
    return [
        PackageIdentifier(
            name=name,
            version=re.sub(r"^[\^~]", "", str(version)),
            ecosystem=Ecosystem.NPM,
        )
        for name, version in deps.items()
    ]


def parse_requirements_txt(content: str) -> list[PackageIdentifier]:
    """Parse a requirements.txt.

    ``name==1.0`` style lines keep the first constraint's version; bare names
    resolve to "latest". Comments, blank lines and anything else are skipped.
    """
    packages = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        match = REQUIREMENT_PATTERN.match(line)
        if match:
            packages.append(
                PackageIdentifier(
                    name=match.group(1),
                    version=match.group(3).split(",")[0].strip(),
                    ecosystem=Ecosystem.PYTHON,
                )
            )
        elif BARE_NAME_PATTERN.match(line):
            packages.append(PackageIdentifier(name=line, ecosystem=Ecosystem.PYTHON))

    return packages


def parse_dockerfile(content: str) -> list[PackageIdentifier]:
    """Parse base images from FROM instructions."""
    packages = []
    for line in content.splitlines():
        match = FROM_PATTERN.match(line.strip())
        if match:
            packages.append(
                PackageIdentifier(
                    name=match.group(1),
                    version=match.group(2) or "latest",
                    ecosystem=Ecosystem.DOCKER,
                )
            )
    return packages


PARSERS = {
    Ecosystem.NPM: parse_package_json,
    Ecosystem.PYTHON: parse_requirements_txt,
    Ecosystem.DOCKER: parse_dockerfile,
}


def resolve_format(format_hint: str) -> Ecosystem:
    """Map an ecosystem name or manifest file name to an ecosystem.

    Raises:
        ValueError: If the hint is not recognized.
    """
    hint = format_hint.strip().lower()
    if hint in FORMAT_ALIASES:
        return FORMAT_ALIASES[hint]
    try:
        return Ecosystem(hint)
    except ValueError:
        supported = ", ".join(e.value for e in Ecosystem)
        raise ValueError(f"Unsupported manifest format: {format_hint}. Supported: {supported}") from None


def parse(raw_text: str, format_hint: str | Ecosystem) -> list[PackageIdentifier]:
    """Parse a manifest into package identifiers.

    Args:
        raw_text: Manifest file content.
        format_hint: Ecosystem (npm, python, docker) or manifest file name.

    Returns:
        Package identifiers in file order.

    Raises:
        ManifestParseError: If the manifest is structurally invalid.
    """
    ecosystem = format_hint if isinstance(format_hint, Ecosystem) else resolve_format(format_hint)
    return PARSERS[ecosystem](raw_text)
