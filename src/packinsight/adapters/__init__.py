"""Package registry adapters."""

from packinsight.adapters.base import BaseAdapter
from packinsight.adapters.docker import DockerHubAdapter
from packinsight.adapters.npm import NpmAdapter
from packinsight.adapters.pypi import PyPiAdapter
from packinsight.http import ResilientClient
from packinsight.models.schemas import Ecosystem

ECOSYSTEM_ADAPTERS: dict[Ecosystem, type[BaseAdapter]] = {
    Ecosystem.NPM: NpmAdapter,
    Ecosystem.PYTHON: PyPiAdapter,
    Ecosystem.DOCKER: DockerHubAdapter,
}


def get_adapter(ecosystem: Ecosystem | str, http: ResilientClient | None = None) -> BaseAdapter:
    """Get adapter for the specified ecosystem.

    Args:
        ecosystem: Package ecosystem (npm, python, docker).
        http: Resilient client passed to the adapter.

    Returns:
        Adapter instance for the ecosystem.

    Raises:
        ValueError: If ecosystem is not supported.
    """
    try:
        adapter_class = ECOSYSTEM_ADAPTERS[Ecosystem(ecosystem)]
    except ValueError:
        supported = ", ".join(e.value for e in ECOSYSTEM_ADAPTERS)
        raise ValueError(f"Unsupported ecosystem: {ecosystem}. Supported: {supported}") from None
    return adapter_class(http)


__all__ = [
    "BaseAdapter",
    "DockerHubAdapter",
    "ECOSYSTEM_ADAPTERS",
    "NpmAdapter",
    "PyPiAdapter",
    "get_adapter",
]
