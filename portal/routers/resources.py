from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from starlette.responses import Response

from portal.controllers.resources import ResourceController
from portal.deps import provide, require_user

router = APIRouter(tags=["pages"])

# Все страницы, кроме стартовой, требуют авторизованной сессии
protected = [Depends(require_user)]


@router.get("/", include_in_schema=False)
async def index(controller: ResourceController = Depends(provide("resource_controller"))) -> Response:
    return await controller.index()


@router.get("/home", dependencies=protected, include_in_schema=False)
async def home(controller: ResourceController = Depends(provide("resource_controller"))) -> Response:
    return await controller.home()


@router.get("/profile", dependencies=protected, include_in_schema=False)
async def profile(controller: ResourceController = Depends(provide("resource_controller"))) -> Response:
    return await controller.profile()


@router.get("/activities", dependencies=protected, include_in_schema=False)
async def activities(
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    controller: ResourceController = Depends(provide("resource_controller")),
) -> Response:
    return await controller.activities(page, limit)


@router.get("/groups", dependencies=protected, include_in_schema=False)
async def groups(controller: ResourceController = Depends(provide("resource_controller"))) -> Response:
    return await controller.groups()
