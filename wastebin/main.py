"""
Wastebin - Main FastAPI application.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from wastebin.config import VALID_LOG_LEVELS, Settings, settings as default_settings
from wastebin.database import ConnectionManager
from wastebin.errors import HealthCheckFailure, InvalidInput, StorageFailure, WastebinError
from wastebin.lifecycle import LifecycleEvaluator
from wastebin.routes import health, pastes
from wastebin.store import PasteStore
from wastebin.validation import ContentValidator

# Configure logging
logging.basicConfig(
    level=default_settings.LOG_LEVEL if default_settings.LOG_LEVEL in VALID_LOG_LEVELS else "INFO",
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    connections: Optional[ConnectionManager] = None,
) -> FastAPI:
    """
    Build the application and its storage stack.

    The database connection is opened on startup and closed on shutdown,
    never at import time.
    """
    settings = settings or default_settings
    connections = connections or ConnectionManager(settings)
    store = PasteStore(connections)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect and migrate on startup, close the database on shutdown."""
        logger.info("Wastebin application starting...")
        settings.validate()
        connections.connect(settings.DB_CONNECT_RETRIES)
        connections.migrate()

        if settings.LOCAL_DB:
            logger.warning(f"DATABASE: Using local SQLite database at {settings.DB_PATH}")
        else:
            logger.info(f"DATABASE: Connected to PostgreSQL at {settings.DB_HOST}:{settings.DB_PORT}")

        yield

        logger.info("Wastebin application shutting down...")
        try:
            connections.close()
        except StorageFailure as e:
            logger.error(f"Error closing database connections: {e}")

    app = FastAPI(
        title="Wastebin",
        description="A self-hosted paste sharing service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.connections = connections
    app.state.store = store
    app.state.validator = ContentValidator(max_size=settings.MAX_PASTE_SIZE)
    app.state.lifecycle = LifecycleEvaluator(store)

    app.include_router(health.router)
    app.include_router(pastes.router)

    @app.exception_handler(WastebinError)
    async def handle_wastebin_error(request: Request, exc: WastebinError) -> JSONResponse:
        body = {"error": exc.public_message, "code": exc.code}
        if isinstance(exc, HealthCheckFailure):
            logger.error(f"Database health check failed ({exc.reason}): {exc}")
            body["reason"] = exc.reason
        elif exc.status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
        return JSONResponse(status_code=exc.status, content=body)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info(f"Rejected request body for {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=InvalidInput.status,
            content={"error": "Invalid request body", "code": InvalidInput.code},
        )

    return app


app = create_app()


def run() -> None:
    import uvicorn
    uvicorn.run(
        "wastebin.main:app",
        host="0.0.0.0",
        port=default_settings.WEBAPP_PORT,
        reload=default_settings.DEBUG,
    )


if __name__ == "__main__":
    run()
