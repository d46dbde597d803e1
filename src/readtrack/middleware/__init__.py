"""Middleware registration."""

from fastapi import FastAPI

from readtrack.config import Settings
from readtrack.middleware.cors import setup_cors
from readtrack.middleware.error_handler import setup_error_handlers
from readtrack.middleware.logging import setup_logging
from readtrack.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware; the last one added (CORS) is outermost."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
