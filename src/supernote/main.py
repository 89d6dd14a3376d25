"""
Supernote Backend Application

FastAPI application factory with async lifespan management.
Handles startup checks (database reachability, pool warm-up) and graceful
shutdown. uvicorn turns SIGINT/SIGTERM into the lifespan shutdown phase.

Start locally:
    supernote-server
    uvicorn supernote.main:create_app --factory --port 8080 --reload
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException

from supernote.api.dependencies import get_note_repository
from supernote.api.notes import router as notes_router
from supernote.core.config import Settings, load_settings
from supernote.core.database import (
    create_engine,
    create_session_factory,
    init_schema,
    warm_pool,
)
from supernote.core.exceptions import NoteError
from supernote.core.logging import setup_logging
from supernote.repositories.notes import NoteRepository

logger = logging.getLogger(__name__)

ENDPOINTS = (
    ("GET", "/health", "Health check"),
    ("GET", "/api/notes", "List notes"),
    ("POST", "/api/notes", "Create note"),
    ("GET", "/api/notes/{id}", "Get note by ID"),
    ("DELETE", "/api/notes/{id}", "Delete note"),
    ("POST", "/api/search", "Search notes (not implemented)"),
    ("POST", "/api/chat", "Chat with notes (not implemented)"),
)


async def wait_for_db(engine: AsyncEngine, retries: int = 10, delay: float = 1) -> bool:
    """
    Wait for PostgreSQL to become available.

    Useful in containerized environments where the database may start
    after the application. Implements retry logic with linear delay.

    Args:
        engine: Engine whose pool is probed.
        retries: Maximum connection attempts.
        delay: Seconds between attempts.

    Returns:
        True if connection established, False if all retries exhausted.
    """
    for i in range(retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Postgres connection established")
            return True
        except Exception as e:
            logger.warning("Waiting for Postgres (%d/%d)... Error: %s", i + 1, retries, e)
            await asyncio.sleep(delay)

    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Creates the engine and validates database connectivity
          (required, blocks startup on failure)
        - Optionally creates the schema (AUTO_CREATE_SCHEMA)
        - Opens the pool's minimum connections
        - Publishes the NoteRepository on app.state

    Shutdown:
        - Disposes the engine, closing every pooled connection
    """
    settings: Settings = app.state.settings
    logger.info("Starting %s...", settings.PROJECT_NAME)
    logger.info("Environment: %s | Log Level: %s", settings.ENV, settings.LOG_LEVEL)

    engine = create_engine(settings)
    if not await wait_for_db(
        engine, settings.DB_CONNECT_RETRIES, settings.DB_CONNECT_RETRY_DELAY
    ):
        logger.critical("Could not connect to Postgres. Shutting down.")
        await engine.dispose()
        raise RuntimeError("Database connection failed")

    if settings.AUTO_CREATE_SCHEMA:
        await init_schema(engine)
    await warm_pool(engine, settings.DB_POOL_MIN_CONNS)

    app.state.note_repository = NoteRepository(
        create_session_factory(engine),
        default_timeout=settings.query_timeout,
    )

    logger.info("Available endpoints:")
    for method, path, summary in ENDPOINTS:
        logger.info("  %-6s %-18s - %s", method, path, summary)

    yield  # Application runs here

    logger.info("Shutting down %s...", settings.PROJECT_NAME)
    await engine.dispose()
    logger.info("Database connection pool closed")


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render every HTTP error as ``{"error": message}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


health_router = APIRouter()


@health_router.get("/health")
async def health_check(
    request: Request,
    repo: NoteRepository = Depends(get_note_repository),
) -> Any:
    """
    Health check endpoint for load balancers and orchestrators.

    Probes the database through the pool; 503 when it is unreachable.
    The failure cause is logged, not returned.
    """
    settings: Settings = request.app.state.settings
    service = {"service": settings.SERVICE_NAME, "version": settings.VERSION}

    try:
        await repo.ping()
    except NoteError as exc:
        logger.warning("Health check failed: %s", exc.message, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "disconnected", **service},
        )

    return {"status": "healthy", "database": "connected", **service}


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Loaded configuration. Read from the environment when None
            and logging is configured here (the ``--factory`` entry point
            of uvicorn).
    """
    if settings is None:
        settings = load_settings()
        setup_logging(settings)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(health_router, tags=["Health"])
    app.include_router(notes_router, prefix="/api", tags=["Notes"])
    return app


def run() -> None:
    """Console entry point: load settings, then serve with uvicorn."""
    try:
        settings = load_settings()
    except ValidationError as exc:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        )
        logger.critical("Invalid configuration (is DATABASE_URL set?): %s", exc)
        raise SystemExit(1) from exc

    setup_logging(settings)
    app = create_app(settings)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
