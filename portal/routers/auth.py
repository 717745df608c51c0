from __future__ import annotations

from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from portal.controllers.auth import AuthController
from portal.deps import provide

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)


@router.get("/auth", include_in_schema=False)
async def login(controller: AuthController = Depends(provide("auth_controller"))) -> RedirectResponse:
    return await controller.login()


@router.get("/auth/callback", include_in_schema=False)
async def callback(
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    controller: AuthController = Depends(provide("auth_controller")),
) -> RedirectResponse:
    return await controller.authorize(code, state, error)


@router.get("/logout", include_in_schema=False)
async def logout(controller: AuthController = Depends(provide("auth_controller"))) -> RedirectResponse:
    logger.info("logout requested")
    return await controller.logout()
