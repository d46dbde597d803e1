"""Global error handlers: every failure leaves as a JSON body."""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from readtrack.errors import ConflictError, InvalidTransitionError, ReadTrackError

logger = structlog.get_logger()


def error_body(exc: ReadTrackError) -> dict[str, object]:
    body: dict[str, object] = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, InvalidTransitionError):
        body["current_status"] = exc.current_status
        body["target_status"] = exc.target_status
    if isinstance(exc, ConflictError):
        body["retryable"] = True
    return body


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(ReadTrackError)
    async def domain_exception_handler(request: Request, exc: ReadTrackError) -> JSONResponse:
        """Map domain errors to their HTTP status."""
        logger.info(
            "domain_error",
            path=request.url.path,
            method=request.method,
            error=type(exc).__name__,
            detail=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=error_body(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions."""
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
