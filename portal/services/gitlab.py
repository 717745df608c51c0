from __future__ import annotations

import math
from time import perf_counter
from typing import Any, Dict, Optional

import httpx
import jwt
import logging
from pydantic import ValidationError

from portal.core.errors import HttpError
from portal.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS
from portal.schemas import ActivityPage, Profile

logger = logging.getLogger(__name__)

GRAPHQL_PATH = "/api/graphql"
EVENTS_PATH = "/api/v4/events"

MAX_PER_PAGE = 100  # ограничение GitLab для per_page

LAST_ACTIVITY_QUERY = """
query {
  currentUser {
    lastActivityOn
  }
}
"""

GROUPS_QUERY = """
query {
  currentUser {
    groups(first: 3) {
      nodes {
        avatarUrl
        name
        webUrl
        fullPath
        projects(first: 5) {
          nodes {
            avatarUrl
            name
            webUrl
            fullPath
            repository {
              tree {
                lastCommit {
                  committedDate
                  authorGravatar
                  author {
                    name
                    username
                  }
                }
              }
            }
          }
          pageInfo {
            hasNextPage
          }
        }
      }
      pageInfo {
        hasNextPage
      }
    }
  }
}
"""


class GitLabAPI:
    """Low-level access to GitLab over a shared httpx client.

    Every failure (network, timeout, non-2xx) surfaces as :class:`HttpError`.
    """

    def __init__(self, http: httpx.AsyncClient):
        self.http = http  # base_url=settings.GITLAB_BASE_URL

    @staticmethod
    def _bearer(user: Optional[Dict[str, Any]]) -> Dict[str, str]:
        token = (user or {}).get("access_token")
        if not token:
            raise HttpError(401, "Missing access token")
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def _raise_for_status(r: httpx.Response, message: str = "GitLab API request failed") -> None:
        if 200 <= r.status_code < 300:
            return
        try:
            detail = r.json()
        except Exception:
            detail = r.text
        # 4xx GitLab отдаём как есть, 5xx и прочее — 502
        status = r.status_code if 400 <= r.status_code < 500 else 502
        raise HttpError(status, message, data={"provider_status": r.status_code, "provider_body": detail})

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> httpx.Response:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("HTTP %s %s", method, url)
        start = perf_counter()
        result = "error"
        try:
            r = await self.http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            result = "timeout"
            logger.warning("HTTP %s %s -> timeout", method, url)
            raise HttpError(504, "GitLab API timed out") from e
        except httpx.HTTPError as e:
            result = "network"
            logger.warning("HTTP %s %s -> %s", method, url, e)
            raise HttpError(502, "GitLab API is unreachable") from e
        finally:
            PROVIDER_LATENCY.labels(operation=operation).observe(perf_counter() - start)
        try:
            if r.status_code >= 300:
                result = str(r.status_code)
                logger.warning("HTTP %s %s -> %s; body: %s", method, url, r.status_code, r.text[:1000])
            else:
                result = "ok"
                logger.debug("HTTP %s %s -> %s", method, url, r.status_code)
        finally:
            PROVIDER_REQUESTS.labels(operation=operation, result=result).inc()
        return r

    def _json(self, r: httpx.Response) -> Any:
        try:
            return r.json()
        except ValueError as e:
            raise HttpError(502, "Unexpected response from GitLab") from e

    async def graphql(self, user: Dict[str, Any], query: str, operation: str = "graphql") -> Dict[str, Any]:
        r = await self._request(operation, "POST", GRAPHQL_PATH, json={"query": query}, headers=self._bearer(user))
        self._raise_for_status(r, "GitLab GraphQL request failed")
        body = self._json(r)
        if not isinstance(body, dict):
            raise HttpError(502, "Unexpected response from GitLab")
        if body.get("errors"):
            raise HttpError(502, "GitLab GraphQL query failed", data={"errors": body["errors"]})
        data = body.get("data")
        if not isinstance(data, dict):
            raise HttpError(502, "Unexpected response from GitLab")
        return data


class ResourceService(GitLabAPI):
    """Reads the signed-in user's data from GitLab and shapes it into view models."""

    def __init__(self, http: httpx.AsyncClient, total_activities: int = 120):
        super().__init__(http)
        self.total_activities = max(1, int(total_activities))

    @staticmethod
    def decode_id_token(id_token: Optional[str]) -> Dict[str, Any]:
        # токен получен напрямую от GitLab по TLS, подпись не проверяем
        if not id_token:
            raise HttpError(401, "Missing ID token")
        try:
            return jwt.decode(id_token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            raise HttpError(401, "Invalid ID token") from e

    async def fetch_profile(self, user: Dict[str, Any]) -> Profile:
        claims = self.decode_id_token((user or {}).get("id_token"))
        data = await self.graphql(user, LAST_ACTIVITY_QUERY, operation="profile")
        current = data.get("currentUser") or {}
        try:
            return Profile(
                id=str(claims["sub"]) if claims.get("sub") is not None else None,
                email=claims.get("email"),
                username=claims.get("preferred_username") or claims.get("nickname"),
                name=claims.get("name"),
                avatar=claims.get("picture"),
                last_activity_on=current.get("lastActivityOn"),
            )
        except ValidationError as e:
            raise HttpError(502, "Unexpected response from GitLab") from e

    def total_pages(self, limit: int) -> int:
        return max(1, math.ceil(self.total_activities / limit))

    async def fetch_activities(
        self,
        user: Dict[str, Any],
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ActivityPage:
        limit = max(1, min(int(limit or 20), MAX_PER_PAGE))
        total_pages = self.total_pages(limit)
        page = max(1, min(int(page or 1), total_pages))

        r = await self._request(
            "activities",
            "GET",
            EVENTS_PATH,
            params={"per_page": limit, "page": page},
            headers=self._bearer(user),
        )
        self._raise_for_status(r)
        items = self._json(r)
        if not isinstance(items, list):
            raise HttpError(502, f"Unexpected response structure from {EVENTS_PATH}")
        try:
            return ActivityPage(activities=items, page=page, limit=limit, total_pages=total_pages)
        except ValidationError as e:
            raise HttpError(502, "Unexpected response from GitLab") from e

    async def fetch_groups(self, user: Dict[str, Any]) -> Dict[str, Any]:
        data = await self.graphql(user, GROUPS_QUERY, operation="groups")
        current = data.get("currentUser")
        if not isinstance(current, dict):
            raise HttpError(502, "Unexpected response from GitLab")
        return current.get("groups") or {"nodes": [], "pageInfo": {"hasNextPage": False}}
