"""
PAF Workflow Service - Main FastAPI Application

This is the entry point for the FastAPI application.
It configures middleware, routes, and lifecycle handlers.
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from .config.settings import settings
from .api.deps import get_paf_service
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .domain.enums import ApproverRole
from .domain.models import ActorContext
from .repositories.mongo_client import create_indexes, close_connection
from .services.paf_service import PafService
from .utils.logger import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"

# Identity used for work the service does on its own behalf
SYSTEM_ACTOR = ActorContext(actor_id="system", role=ApproverRole.SYSTEM_OWNER, display_name="System")


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Creates MongoDB indexes (mongo backend)
        - Seeds default templates (if SEED_DEFAULT_TEMPLATES is set)

    Shutdown:
        - Closes database connections
    """
    logger.info("Starting PAF Workflow Service...")
    use_mongo = settings.persistence_backend.lower() == "mongo"

    if use_mongo:
        try:
            create_indexes()
            logger.info("MongoDB indexes created")
        except PyMongoError as e:
            logger.error(f"Failed to create indexes: {e}")

    if settings.seed_default_templates:
        service = get_paf_service()
        created = service.seed_default_templates(SYSTEM_ACTOR, tenant_id=settings.default_tenant_id)
        logger.info(f"Seeded {len(created)} default templates")

    logger.info("Application started successfully")

    yield

    logger.info("Shutting down...")
    if use_mongo:
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
        title="PAF Workflow Service",
        description="Personnel Action Form approval workflow engine",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    # Register middleware
    _configure_middleware(application)

    # Register error handlers
    register_error_handlers(application)

    # Register routes
    _configure_routes(application)

    return application


def _configure_middleware(app: FastAPI) -> None:
    """Configure application middleware."""
    # Note: allow_credentials must be False when allowing all origins
    allow_all = settings.cors_origins.strip() == "*"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )

    # Correlation ID middleware
    app.add_middleware(CorrelationIdMiddleware)


def _configure_routes(app: FastAPI) -> None:
    """Configure application routes."""
    # API routes (versioned)
    app.include_router(api_router, prefix="/api/v1")

    # Health check endpoint (no auth required)
    @app.get("/health", tags=["Health"])
    async def health(service: PafService = Depends(get_paf_service)):
        """
        Health check endpoint.

        Returns application health status including store connectivity.
        """
        store_health = service.store.health_check()
        return {
            "status": "healthy" if store_health.get("status") == "healthy" else "degraded",
            "version": APP_VERSION,
            "environment": settings.environment,
            "store": store_health
        }

    # Root endpoint
    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "PAF Workflow Service",
            "version": APP_VERSION,
            "docs": "/api/docs" if settings.debug else None
        }


# =============================================================================
# Application Instance
# =============================================================================

# Create the application instance
app = create_app()
