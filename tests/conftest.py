"""
Shared test fixtures.

Key fixtures:
- upstream: a recording stand-in for the Habitica API, served through
  ``httpx.MockTransport`` so no network is needed
- habitica_client: a ``HabiticaClient`` wired to that stand-in
"""

from typing import Any, Optional

import httpx
import pytest

BASE_URL = "https://habitica.test/api/v3"
API_PREFIX = "/api/v3"


class UpstreamStub:
    """
    Fake Habitica API.

    Responses are registered per (method, path) where path is relative to
    the API prefix; every request received is kept for assertions.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], dict[str, Any]] = {}

    def add(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        status_code: int = 200,
        content: Optional[bytes] = None
    ) -> None:
        if content is not None:
            self._routes[(method, path)] = {"status_code": status_code, "content": content}
        else:
            self._routes[(method, path)] = {"status_code": status_code, "json": json}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PREFIX)
        route = self._routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"success": False, "message": "Not found."})
        return httpx.Response(**route)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def habitica_client(upstream):
    """Client bound to test credentials and the fake API."""
    from habitica.client import HabiticaClient, create_http_client
    from shared.models import UpstreamCredentials

    http = create_http_client(BASE_URL, transport=upstream.transport())
    return HabiticaClient(http, UpstreamCredentials(user_id="user-1", api_token="token-1"))
