from __future__ import annotations

import logging
import secrets
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from portal.core.config import Settings
from portal.core.errors import HttpError
from portal.metrics import OAUTH_EXCHANGES
from portal.schemas import TokenPayload
from portal.services.gitlab import GitLabAPI

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/token"


class AuthService(GitLabAPI):
    """OAuth2 authorization-code flow against GitLab."""

    def __init__(self, http: httpx.AsyncClient, settings: Settings):
        super().__init__(http)
        self.settings = settings

    @staticmethod
    def new_state() -> str:
        return secrets.token_urlsafe(24)

    def authorization_url(self, state: str) -> str:
        s = self.settings
        query = urlencode({
            "client_id": s.CLIENT_ID,
            "redirect_uri": s.REDIRECT_URI,
            "response_type": "code",
            "state": state,
            "scope": s.SCOPE,
        })
        return f"{s.oauth_url}/authorize?{query}"

    async def authorize_user(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for the token payload."""
        s = self.settings
        form = {
            "client_id": s.CLIENT_ID,
            "client_secret": s.CLIENT_SECRET,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": s.REDIRECT_URI,
        }
        try:
            r = await self._request("token", "POST", TOKEN_PATH, data=form, headers={"Accept": "application/json"})
            if r.status_code in (400, 401):
                raise HttpError(401, "Authorization with GitLab failed",
                                data={"provider_status": r.status_code, "provider_body": _safe_body(r)})
            self._raise_for_status(r, "GitLab token exchange failed")
            try:
                payload = TokenPayload.model_validate(self._json(r))
            except ValidationError as e:
                raise HttpError(502, "Malformed token response from GitLab") from e
        except HttpError:
            OAUTH_EXCHANGES.labels(result="error").inc()
            raise
        OAUTH_EXCHANGES.labels(result="ok").inc()
        logger.info("oauth: token exchange succeeded (scope=%s)", payload.scope)
        return payload.model_dump(exclude_none=True)


def _safe_body(r: httpx.Response) -> Any:
    try:
        body = r.json()
    except Exception:
        return r.text[:500]
    if isinstance(body, dict):
        return {k: v for k, v in body.items() if k in ("error", "error_description")}
    return body
