from __future__ import annotations

from typing import Any, Callable, Dict, List, Union
from urllib.parse import parse_qs, urlparse

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from portal.core.config import Settings
from portal.main import create_app

GITLAB = "https://gitlab.example.com"

ID_TOKEN_CLAIMS = {
    "sub": "42",
    "email": "ada@example.com",
    "preferred_username": "ada",
    "name": "Ada Lovelace",
    "picture": "https://secure.gravatar.com/avatar/ada",
}

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "CLIENT_ID": "client-id",
        "CLIENT_SECRET": "client-secret",
        "REDIRECT_URI": "http://testserver/auth/callback",
        "SESSION_SECRET": "test-session-secret",
        "GITLAB_BASE_URL": GITLAB,
        "ENVIRONMENT": "development",
    }
    values.update(overrides)
    return Settings(**values)


def make_id_token(**claims: Any) -> str:
    payload = dict(ID_TOKEN_CLAIMS)
    payload.update(claims)
    return jwt.encode(payload, "signature-is-not-verified-by-the-portal", algorithm="HS256")


class FakeGitLab:
    """GitLab double answering through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.replies: Dict[str, Reply] = {
            "/oauth/token": httpx.Response(200, json={
                "access_token": "access-123",
                "id_token": make_id_token(),
                "token_type": "Bearer",
                "scope": "openid profile email read_api",
            }),
            "/api/graphql": self._graphql,
            "/api/v4/events": self._events,
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.get(request.url.path)
        if reply is None:
            return httpx.Response(404, json={"message": "404 Not Found"})
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return reply(request)

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @staticmethod
    def _graphql(request: httpx.Request) -> httpx.Response:
        body = request.read().decode()
        if "groups" in body:
            return httpx.Response(200, json={"data": {"currentUser": {"groups": {
                "nodes": [{
                    "name": "Course",
                    "fullPath": "course",
                    "webUrl": f"{GITLAB}/course",
                    "avatarUrl": None,
                    "projects": {
                        "nodes": [{
                            "name": "assignment",
                            "fullPath": "course/assignment",
                            "webUrl": f"{GITLAB}/course/assignment",
                            "avatarUrl": None,
                            "repository": {"tree": {"lastCommit": {
                                "committedDate": "2024-02-01T10:00:00Z",
                                "authorGravatar": None,
                                "author": {"name": "Ada Lovelace", "username": "ada"},
                            }}},
                        }],
                        "pageInfo": {"hasNextPage": False},
                    },
                }],
                "pageInfo": {"hasNextPage": True},
            }}}})
        return httpx.Response(200, json={"data": {"currentUser": {"lastActivityOn": "2024-02-03"}}})

    @staticmethod
    def _events(request: httpx.Request) -> httpx.Response:
        per_page = int(request.url.params.get("per_page", "20"))
        page = int(request.url.params.get("page", "1"))
        return httpx.Response(200, json=[
            {"id": (page - 1) * per_page + i, "action_name": "pushed to", "created_at": "2024-02-01T10:00:00Z",
             "target_type": None, "target_title": None, "push_data": {"ref": "main"}}
            for i in range(per_page)
        ])


@pytest.fixture
def gitlab() -> FakeGitLab:
    return FakeGitLab()


@pytest.fixture
def http_client(gitlab: FakeGitLab) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=GITLAB, transport=httpx.MockTransport(gitlab))


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def app(settings: Settings, http_client: httpx.AsyncClient):
    return create_app(settings=settings, http_client=http_client)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def start_login(client: TestClient) -> str:
    """Visit /auth and return the state sent to GitLab."""
    r = client.get("/auth", follow_redirects=False)
    assert r.status_code == 302
    return parse_qs(urlparse(r.headers["location"]).query)["state"][0]


def login(client: TestClient, code: str = "auth-code") -> httpx.Response:
    state = start_login(client)
    return client.get("/auth/callback", params={"code": code, "state": state}, follow_redirects=False)


@pytest.fixture
def authed_client(client: TestClient) -> TestClient:
    r = login(client)
    assert r.status_code == 302
    assert r.headers["location"] == "/home"
    return client
