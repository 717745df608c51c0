from __future__ import annotations

import pathlib

import httpx
from fastapi.templating import Jinja2Templates

from portal.controllers.auth import AuthController
from portal.controllers.resources import ResourceController
from portal.core.config import Settings
from portal.core.container import Lifetime, ScopeError, ServiceContainer
from portal.core.sessions import Session, SessionStore
from portal.services.auth import AuthService
from portal.services.gitlab import ResourceService

TEMPLATES_DIR = pathlib.Path(__file__).resolve().parent / "templates"


def _request_placeholder(resolve):
    # запрос кладёт в scope middleware; сам по себе он не создаётся
    raise ScopeError("'request' is only available inside a request scope")


def build_container(settings: Settings, http_client: httpx.AsyncClient) -> ServiceContainer:
    """Register every application service by name."""
    container = ServiceContainer()

    container.register_instance("settings", settings)
    container.register_instance("http_client", http_client)
    container.register_factory(
        "templates",
        lambda resolve: Jinja2Templates(directory=str(TEMPLATES_DIR)),
        Lifetime.SINGLETON,
    )
    container.register_factory(
        "session_store",
        lambda resolve: SessionStore(ttl_s=resolve("settings").SESSION_MAX_AGE_S),
        Lifetime.SINGLETON,
    )

    container.register_singleton("auth_service", AuthService, ["http_client", "settings"])
    container.register_factory(
        "resource_service",
        lambda resolve: ResourceService(resolve("http_client"), resolve("settings").ACTIVITIES_TOTAL),
        Lifetime.SINGLETON,
    )

    container.register_factory("request", _request_placeholder, Lifetime.SCOPED)
    container.register_scoped("session", Session, ["session_store", "request"])

    container.register_scoped("auth_controller", AuthController, ["auth_service", "session"])
    container.register_scoped(
        "resource_controller",
        ResourceController,
        ["resource_service", "session", "templates", "request"],
    )
    return container
