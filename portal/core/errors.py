from __future__ import annotations

import logging
import traceback
from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class HttpError(HTTPException):
    """HTTP error with a client-facing message and optional detail data."""

    def __init__(
        self,
        status_code: int = 500,
        message: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not message:
            message = _status_phrase(status_code)
        super().__init__(status_code=status_code, detail=message)
        self.data = data or {}

    @property
    def message(self) -> str:
        return str(self.detail)


class NotAuthenticatedError(Exception):
    """Raised by the authentication gate; answered with a redirect, not an error."""


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def convert_to_http_error(exc: BaseException) -> HttpError:
    if isinstance(exc, HttpError):
        return exc
    if isinstance(exc, StarletteHTTPException):
        return HttpError(exc.status_code, str(exc.detail) if exc.detail else None)
    # текст исключения клиенту не отдаём, он остаётся в data (видно только в development)
    err = HttpError(500, data={"type": type(exc).__name__, "reason": str(exc)})
    err.__cause__ = exc
    return err


def error_payload(exc: BaseException, status_code: int, production: bool) -> Dict[str, Any]:
    message = exc.message if isinstance(exc, HttpError) else str(getattr(exc, "detail", "") or exc)
    if production:
        # наружу уходит только сообщение HttpError; всё прочее — стандартная фраза статуса
        if not isinstance(exc, HttpError):
            message = _status_phrase(status_code)
        return {"error": message}

    # ⚠️ только для разработки: подробности ошибки
    cause = exc.__cause__ or exc.__context__
    return {
        "error": message,
        "status": status_code,
        "message": message,
        "type": type(exc).__name__,
        "data": getattr(exc, "data", {}) or {},
        "cause": repr(cause) if cause is not None else None,
        "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__),
    }


def install_error_handlers(app, production: bool) -> None:
    """Register the centralized error responder on a FastAPI app."""

    @app.exception_handler(NotAuthenticatedError)
    async def _not_authenticated(request: Request, exc: NotAuthenticatedError):
        return RedirectResponse("/", status_code=302)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and not isinstance(exc, HttpError):
            # неизвестный маршрут
            exc = HttpError(
                404,
                "The requested resource was not found.",
                data={"url": str(request.url.path) + (f"?{request.url.query}" if request.url.query else "")},
            )
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail,
                         exc_info=exc)
        else:
            logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(exc, exc.status_code, production),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        err = HttpError(400, "Invalid request parameters.", data={"errors": jsonable_encoder(exc.errors())})
        logger.warning("%s %s -> 400: %s", request.method, request.url.path, err.data["errors"])
        return JSONResponse(status_code=400, content=error_payload(err, 400, production))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.error("%s %s -> 500", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content=error_payload(exc, 500, production))
