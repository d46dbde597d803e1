"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from readtrack.config import get_settings
from readtrack.database import close_db, init_db
from readtrack.goals.router import router as goals_router
from readtrack.health.router import router as health_router
from readtrack.middleware import setup_middleware
from readtrack.reading.router import router as reading_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    yield
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ReadTrack API",
        description="Reading tracker backend: shelves, status history and reading goals",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(reading_router)
    app.include_router(goals_router)

    return app


app = create_app()
