import httpx
import pytest

from packinsight.http import ResilientClient


class FakeUpstream:
    """
    Routes requests by scheme://host/path to canned responses.
    Unknown URLs answer 404. A route set to an exception raises it.
    Every request is recorded in .requests.
    """
    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, url, json=None, status=200, headers=None):
        self.routes[url] = (status, json, headers or {})

    def fail(self, url, exc=None):
        self.routes[url] = exc or httpx.ConnectError("connection refused")

    def calls(self, url):
        return [r for r in self.requests if self._key(r) == url]

    @staticmethod
    def _key(request):
        return f"{request.url.scheme}://{request.url.host}{request.url.path}"

    def __call__(self, request):
        self.requests.append(request)
        route = self.routes.get(self._key(request))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(route, Exception):
            raise route
        status, payload, headers = route
        return httpx.Response(status, json=payload, headers=headers)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def http(upstream):
    """ResilientClient wired to the fake upstream, with no backoff delay."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return ResilientClient(client, base_delay=0)
