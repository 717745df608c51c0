from __future__ import annotations

from typing import Any, Callable

from fastapi import Depends, Request

from portal.core.container import RequestScope, ServiceContainer
from portal.core.errors import NotAuthenticatedError
from portal.core.sessions import Session


async def get_container(request: Request) -> ServiceContainer:
    # Один контейнер на приложение (создаётся в create_app)
    return request.app.state.container


async def get_scope(request: Request) -> RequestScope:
    scope: RequestScope = request.state.scope  # открывается в middleware
    if "request" not in scope:
        scope.set("request", request)
    return scope


def provide(name: str) -> Callable[..., Any]:
    """FastAPI dependency resolving a named service within the request scope."""

    async def _resolve(
        container: ServiceContainer = Depends(get_container),
        scope: RequestScope = Depends(get_scope),
    ) -> Any:
        return container.resolve(name, scope)

    _resolve.__name__ = f"provide_{name}"
    return _resolve


async def require_user(session: Session = Depends(provide("session"))) -> Session:
    """Authentication gate: without a session user the request is redirected to `/`."""
    if not session.is_authenticated:
        session.pop("user")
        raise NotAuthenticatedError()
    return session
