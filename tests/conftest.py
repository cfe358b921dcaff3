"""
Test Configuration

Pytest configuration and fixtures for the test suite.

Outbound traffic (GitHub lookups and Discord forwards) goes through an
httpx.MockTransport backed by FakeUpstream, so no test touches the network.
"""

import json
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from webhook_relay.config import Settings
from webhook_relay.main import create_app

GITHUB_API_URL = "https://api.github.test"
CATCH_ALL_URL = "https://discord.com/api/webhooks/100/catch-all-token/github"
REST_URL = "https://discord.com/api/webhooks/200/rest-token/github"
DISCORD_JS_URL = "https://discord.com/api/webhooks/300/djs-token/github"


class FakeUpstream:
    """
    Stand-in for GitHub and Discord.

    GitHub routes are keyed by URL path; unknown paths answer 404.
    Discord answers with discord_status / discord_headers / discord_body,
    or raises discord_error when it is set.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.github_routes: Dict[str, Tuple[int, Any, Dict[str, str]]] = {}
        self.discord_status = 204
        self.discord_headers: Dict[str, str] = {}
        self.discord_body = b""
        self.discord_error: Optional[Exception] = None

    def add_github_route(
        self,
        path: str,
        body: Any,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None
    ) -> None:
        self.github_routes[path] = (status_code, body, headers or {})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "api.github.test":
            status_code, body, headers = self.github_routes.get(
                request.url.path,
                (404, {"message": "Not Found"}, {})
            )
            if callable(body):
                body = body(request)
            return httpx.Response(status_code, json=body, headers=headers)

        if self.discord_error is not None:
            raise self.discord_error
        return httpx.Response(
            self.discord_status,
            headers=self.discord_headers,
            stream=httpx.ByteStream(self.discord_body)
        )

    @property
    def github_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == "api.github.test"]

    @property
    def forwarded(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == "discord.com"]


@pytest.fixture
def upstream() -> FakeUpstream:
    """Fake GitHub/Discord upstream recording every outbound request."""
    return FakeUpstream()


@pytest.fixture
def http_client(upstream: FakeUpstream) -> httpx.AsyncClient:
    """Async HTTP client wired to the fake upstream."""
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream))


def build_settings(**overrides: Any) -> Settings:
    """Settings isolated from .env files, with test endpoints."""
    values: Dict[str, Any] = {
        "discord_webhooks": {"monorepo": CATCH_ALL_URL, "rest": REST_URL},
        "github_api_url": GITHUB_API_URL,
        "github_token": "test-token",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def make_client(http_client: httpx.AsyncClient) -> Callable[..., TestClient]:
    """Factory for test clients with custom settings; use as a context manager."""
    def _make(**overrides: Any) -> TestClient:
        return TestClient(create_app(build_settings(**overrides), http_client))
    return _make


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> Generator[TestClient, None, None]:
    """Test client with a catch-all and a rest endpoint configured."""
    with make_client() as test_client:
        yield test_client


def github_headers(event: str, **extra: str) -> Dict[str, str]:
    """Headers GitHub sends with a delivery."""
    headers = {
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": "72d3162e-cc78-11e3-81ab-4c9367dc0958",
        "X-GitHub-Hook-ID": "292430182",
        "Content-Type": "application/json",
        "User-Agent": "GitHub-Hookshot/044aadd",
        "Accept": "*/*",
    }
    headers.update(extra)
    return headers


def post_event(
    client: TestClient,
    event: str,
    payload: Any,
    method: str = "POST",
    **extra_headers: str
) -> httpx.Response:
    """Deliver a webhook to the relay the way GitHub would."""
    return client.request(
        method,
        "/webhook/github",
        content=json.dumps(payload).encode(),
        headers=github_headers(event, **extra_headers)
    )


@pytest.fixture
def repository() -> Dict[str, Any]:
    """Repository object shared by every sample payload."""
    return {
        "id": 111,
        "name": "discord.js",
        "full_name": "discordjs/discord.js",
        "private": False,
        "owner": {"login": "discordjs", "id": 1, "type": "Organization"},
        "html_url": "https://github.com/discordjs/discord.js",
    }


@pytest.fixture
def push_payload(repository: Dict[str, Any]) -> Dict[str, Any]:
    """Push touching only packages/rest."""
    return {
        "ref": "refs/heads/main",
        "before": "a10867b14bb761a232cd80139fbd4c0d33264240",
        "after": "b20867b14bb761a232cd80139fbd4c0d33264241",
        "commits": [
            {
                "id": "b20867b14bb761a232cd80139fbd4c0d33264241",
                "message": "fix(rest): handle 429 on global bucket",
                "added": [],
                "removed": [],
                "modified": ["packages/rest/src/lib/REST.ts"],
            }
        ],
        "head_commit": {
            "id": "b20867b14bb761a232cd80139fbd4c0d33264241",
            "added": [],
            "removed": [],
            "modified": ["packages/rest/src/lib/REST.ts"],
        },
        "repository": repository,
        "sender": {"login": "octocat", "id": 2, "type": "User"},
    }


@pytest.fixture
def pr_payload(repository: Dict[str, Any]) -> Dict[str, Any]:
    """Pull request event whose title names no package."""
    return {
        "action": "opened",
        "number": 42,
        "pull_request": {
            "id": 123456789,
            "number": 42,
            "state": "open",
            "title": "Update dependencies",
            "labels": [],
            "head": {"ref": "feature-branch", "sha": "abc123def456"},
            "base": {"ref": "main", "sha": "xyz789abc012"},
        },
        "repository": repository,
        "sender": {"login": "testuser", "id": 12345, "type": "User"},
    }


@pytest.fixture
def issue_comment_payload(repository: Dict[str, Any]) -> Dict[str, Any]:
    """Comment on an issue labelled for the voice package."""
    return {
        "action": "created",
        "issue": {
            "number": 7,
            "title": "Voice connection drops",
            "labels": [{"name": "packages:voice"}],
            "user": {"login": "reporter", "type": "User"},
        },
        "comment": {
            "id": 99,
            "body": "Same here",
            "user": {"login": "someone", "type": "User"},
        },
        "repository": repository,
        "sender": {"login": "someone", "type": "User"},
    }
