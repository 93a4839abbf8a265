"""JSON error envelope: every failure is {"error": ...} (plus "reason" for moderation rejections)."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from mindwell.config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Business-rule or lookup failure raised by route handlers."""

    def __init__(self, status_code: int, error: str, reason: str | None = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.reason = reason


def not_found(what: str) -> ApiError:
    return ApiError(404, f"{what} not found")


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    body = {"error": exc.error}
    if exc.reason is not None:
        body["reason"] = exc.reason
    return JSONResponse(status_code=exc.status_code, content=body)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": _validation_message(exc)})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("IntegrityError on %s %s: %s", request.method, request.url.path, exc.orig)
    detail = "Constraint violation (duplicate or unknown reference)"
    if settings.debug:
        detail += f": {exc.orig}"
    return JSONResponse(status_code=400, content={"error": detail})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = "Internal server error"
    if settings.debug:
        detail += f": {type(exc).__name__}: {exc}"
    return JSONResponse(status_code=500, content={"error": detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
