from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import NoResultFound

from investment_portal.shared.exceptions import (
    AppError,
    Conflict,
    ExternalServiceError,
    NotAuthenticated,
    NotAuthorized,
    NotFound,
    ValidationError,
)

logger = structlog.get_logger(__name__)

STATUS_BY_ERROR: dict[type[AppError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotAuthenticated: status.HTTP_401_UNAUTHORIZED,
    NotAuthorized: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    ExternalServiceError: status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: AppError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError) -> JSONResponse:
        code = status_for(exc)
        log = logger.warning if code < 500 else logger.error
        log("request.app_error", error=type(exc).__name__, detail=str(exc), status_code=code)
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    @app.exception_handler(NoResultFound)
    async def _no_result(request: Request, exc: NoResultFound) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Not found"})

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request.unhandled_error", error=type(exc).__name__)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )
