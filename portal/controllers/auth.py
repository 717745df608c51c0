from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi.responses import RedirectResponse

from portal.core.errors import HttpError, convert_to_http_error
from portal.core.sessions import Session
from portal.services.auth import AuthService

logger = logging.getLogger(__name__)

STATE_KEY = "oauth_state"


class AuthController:
    """Login, OAuth callback and logout actions."""

    def __init__(self, service: AuthService, session: Session):
        self.service = service
        self.session = session

    async def login(self) -> RedirectResponse:
        try:
            state = self.service.new_state()
            self.session.set(STATE_KEY, state)
            return RedirectResponse(self.service.authorization_url(state), status_code=302)
        except HttpError:
            raise
        except Exception as e:
            raise convert_to_http_error(e) from e

    async def authorize(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
    ) -> RedirectResponse:
        try:
            expected = self.session.pop(STATE_KEY)
            if error:
                logger.info("oauth: provider returned error=%s", error)
                raise HttpError(401, "Authorization was denied.", data={"error": error})
            if not code:
                raise HttpError(400, "Missing authorization code.")
            if not expected or not state or not secrets.compare_digest(expected, state):
                logger.warning("oauth: state mismatch on callback")
                raise HttpError(403, "Invalid OAuth state.")

            user = await self.service.authorize_user(code)
            self.session.user = user
            self.session.regenerate()
            logger.info("oauth: user signed in")
            return RedirectResponse("/home", status_code=302)
        except HttpError:
            raise
        except Exception as e:
            raise convert_to_http_error(e) from e

    async def logout(self) -> RedirectResponse:
        try:
            self.session.destroy()
            return RedirectResponse("/", status_code=302)
        except HttpError:
            raise
        except Exception as e:
            raise convert_to_http_error(e) from e
