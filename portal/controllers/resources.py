from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.templating import Jinja2Templates
from starlette.responses import Response

from portal.core.errors import HttpError, convert_to_http_error
from portal.core.sessions import Session
from portal.services.gitlab import ResourceService


class ResourceController:
    """Page actions; each one hands a view model to a template."""

    def __init__(
        self,
        service: ResourceService,
        session: Session,
        templates: Jinja2Templates,
        request: Request,
    ):
        self.service = service
        self.session = session
        self.templates = templates
        self.request = request

    def _render(self, name: str, context: Optional[Dict[str, Any]] = None) -> Response:
        ctx = {"is_authenticated": self.session.is_authenticated}
        ctx.update(context or {})
        return self.templates.TemplateResponse(self.request, name, ctx)

    async def index(self) -> Response:
        try:
            return self._render("index.html")
        except HttpError:
            raise
        except Exception as e:
            raise convert_to_http_error(e) from e

    async def home(self) -> Response:
        try:
            return self._render("home.html")
        except HttpError:
            raise
        except Exception as e:
            raise convert_to_http_error(e) from e

    async def profile(self) -> Response:
        try:
            profile = await self.service.fetch_profile(self.session.user)
            return self._render("profile.html", {"profile": profile})
        except HttpError:
            raise
        except Exception as e:
            raise convert_to_http_error(e) from e

    async def activities(self, page: Optional[int] = None, limit: Optional[int] = None) -> Response:
        try:
            result = await self.service.fetch_activities(self.session.user, page, limit)
            return self._render("activities.html", result.model_dump())
        except HttpError:
            raise
        except Exception as e:
            raise convert_to_http_error(e) from e

    async def groups(self) -> Response:
        try:
            groups = await self.service.fetch_groups(self.session.user)
            return self._render("groups.html", {"groups": groups})
        except HttpError:
            raise
        except Exception as e:
            raise convert_to_http_error(e) from e
