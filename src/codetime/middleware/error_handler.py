"""Global error handlers producing consistent JSON error responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from codetime.errors import (
    CodetimeError,
    ExpiredRefreshToken,
    ImportInProgress,
    InvalidCredentials,
    InvalidRelation,
    InvalidTagRelation,
    MissingRefreshTokenCookie,
    OperationError,
    PersistenceError,
    RegistrationFailed,
    UnknownApiToken,
    UsernameExists,
)

logger = structlog.get_logger()

STATUS_CODES: dict[type[CodetimeError], int] = {
    UnknownApiToken: 401,
    InvalidCredentials: 401,
    MissingRefreshTokenCookie: 401,
    ExpiredRefreshToken: 403,
    InvalidRelation: 403,
    InvalidTagRelation: 403,
    UsernameExists: 409,
    ImportInProgress: 409,
    RegistrationFailed: 400,
    PersistenceError: 500,
    OperationError: 500,
}


def status_code_for(exc: CodetimeError) -> int:
    """Map a failure kind to its HTTP status, walking the class hierarchy."""
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(CodetimeError)
    async def codetime_exception_handler(request: Request, exc: CodetimeError) -> JSONResponse:
        """Translate domain failures; the body never carries internal details."""
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                method=request.method,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        else:
            logger.info(
                "request_rejected",
                path=request.url.path,
                error_type=type(exc).__name__,
            )
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle validation errors with consistent JSON format."""
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; the body is always JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
