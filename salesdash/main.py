"""
salesdash - FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salesdash.api.v1 import api_router
from salesdash.core.config import settings
from salesdash.core.context import DashboardContext
from salesdash.core.logging_config import configure_logging
from salesdash.services.dashboard_api import DashboardAPI

logger = logging.getLogger(__name__)


def create_app(api: Optional[DashboardAPI] = None) -> FastAPI:
    """
    Create FastAPI application.

    `api` replaces the collaborator client built from settings (tests pass
    one backed by a mock transport).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        # Startup
        configure_logging()
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Environment: {settings.ENVIRONMENT}, upstream: {settings.API_BASE_URL}")

        context = DashboardContext.build(api or DashboardAPI())
        app.state.dashboard = context

        if settings.AUTO_START_LOADS:
            context.start()

        # Initialize scheduler if enabled
        if settings.SCHEDULER_ENABLED:
            from salesdash.tasks.scheduler import start_scheduler
            start_scheduler(context)

        yield

        # Shutdown
        if settings.SCHEDULER_ENABLED:
            from salesdash.tasks.scheduler import stop_scheduler
            stop_scheduler()

        await context.close()
        app.state.dashboard = None
        logger.info(f"Shutting down {settings.APP_NAME}")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Sales and client analytics over a progressively loaded collaborator API",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(api_router)

    return app


# Create app instance
app = create_app()
