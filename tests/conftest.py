"""Shared pytest fixtures for the CallTrackingMetrics client tests.

FakeApi stands in for the remote API: it is plugged into an
``httpx.Client`` through ``httpx.MockTransport``, records every request and
answers authentication and resource requests with configurable responses.
"""

import json
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx
import pytest

from calltrackingmetrics.ctmapi import CallTrackingMetricsClient, RequestDispatcher

BASE_URL = "https://api.example.test/api/v1"

AUTH_OK = {"success": True, "token": "abc", "expires": "2999-01-01T00:00:00Z"}

Handler = Callable[[httpx.Request], httpx.Response]


def form_fields(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body into a flat dict."""
    return dict(urllib.parse.parse_qsl(request.content.decode(), keep_blank_values=True))


def resource_path(request: httpx.Request) -> str:
    """Return the request path relative to the API root."""
    return request.url.path.removeprefix(urllib.parse.urlsplit(BASE_URL).path + "/")


@dataclass
class FakeApi:
    """Recording stand-in for the CallTrackingMetrics API."""

    auth_response: dict | None = field(default_factory=lambda: dict(AUTH_OK))
    auth_error: Exception | None = None
    auth_handler: Handler | None = None
    resource_handler: Handler | None = None
    requests: list[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if resource_path(request) == "authentication":
            if self.auth_handler is not None:
                return self.auth_handler(request)
            if self.auth_error is not None:
                raise self.auth_error
            return httpx.Response(
                200,
                content=json.dumps(self.auth_response).encode(),
                headers={"content-type": "application/json"},
            )
        if self.resource_handler is not None:
            return self.resource_handler(request)
        return httpx.Response(200, json={"ok": True})

    @property
    def auth_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if resource_path(r) == "authentication"]

    @property
    def resource_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if resource_path(r) != "authentication"]


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def http_client(fake_api: FakeApi) -> httpx.Client:
    """httpx client whose transport is the fake API."""
    with httpx.Client(transport=httpx.MockTransport(fake_api)) as client:
        yield client


@pytest.fixture
def dispatcher(http_client: httpx.Client) -> RequestDispatcher:
    return RequestDispatcher(base_url=BASE_URL, http_client=http_client)


@pytest.fixture
def ctm_client(http_client: httpx.Client) -> CallTrackingMetricsClient:
    return CallTrackingMetricsClient("user", "secret", http_client=http_client, base_url=BASE_URL)
