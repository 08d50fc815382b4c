"""
Document Workflow Service - Main FastAPI Application

Entry point for the API. Wires middleware, routes and the background
scheduler into the application lifecycle.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config.settings import settings
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .repositories.mongo_client import create_indexes, close_connection, health_check
from .scheduler.workflow_scheduler import start_scheduler, stop_scheduler
from .utils.logger import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup creates MongoDB indexes and starts the scheduler in
    development. Shutdown stops the scheduler and closes the client.
    """
    logger.info("Starting document workflow service...")

    try:
        create_indexes()
        logger.info("MongoDB indexes created")
    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")

    if settings.environment == "development":
        try:
            start_scheduler()
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")

    logger.info("Application started successfully")

    yield

    logger.info("Shutting down...")
    stop_scheduler()
    close_connection()
    logger.info("Application shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    application = FastAPI(
        title="Document Workflow Service",
        description="Multi-step approval workflows for documents",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    _configure_middleware(application)
    register_error_handlers(application)
    _configure_routes(application)

    return application


def _configure_middleware(app: FastAPI) -> None:
    """Configure application middleware."""
    # allow_credentials must be False when allowing all origins
    allow_all = settings.cors_origins.strip() == "*"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )

    app.add_middleware(CorrelationIdMiddleware)


def _configure_routes(app: FastAPI) -> None:
    """Configure application routes."""
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health():
        """Health status including database connectivity."""
        mongo_health = health_check()
        return {
            "status": "healthy" if mongo_health.get("status") == "healthy" else "degraded",
            "version": APP_VERSION,
            "environment": settings.environment,
            "mongo": mongo_health
        }

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "name": "Document Workflow Service",
            "version": APP_VERSION,
            "docs": "/api/docs" if settings.debug else None
        }


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()
