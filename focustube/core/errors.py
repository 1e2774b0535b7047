"""Domain errors surfaced to API clients as ``{"error": message}`` payloads."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class FocusTubeError(Exception):
    """Base class for errors whose message is safe to show to the user."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(FocusTubeError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(FocusTubeError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(FocusTubeError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(FocusTubeError):
    status_code = status.HTTP_409_CONFLICT


class UpstreamError(FocusTubeError):
    status_code = status.HTTP_502_BAD_GATEWAY


class NotConfiguredError(FocusTubeError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def _handle_focustube_error(request: Request, exc: FocusTubeError) -> JSONResponse:
    logger.info(
        "Request failed with domain error",
        extra={"path": request.url.path, "status": exc.status_code, "error": exc.message},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error", extra={"path": request.url.path}, exc_info=exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Internal server error"})


def install_error_handlers(app: FastAPI) -> None:
    """Render domain errors, ``HTTPException``s and unexpected failures as ``{"error": message}``."""

    app.add_exception_handler(FocusTubeError, _handle_focustube_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(Exception, _handle_unexpected_error)
