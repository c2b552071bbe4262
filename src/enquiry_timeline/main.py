"""FastAPI application factory.

Creates the app with logging middleware, CORS, a lifespan that builds the
shared CRM client, and the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.enquiry_timeline.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.enquiry_timeline.api.v1.router import router as v1_router
from src.enquiry_timeline.config import get_settings
from src.enquiry_timeline.services.crm_api import CrmApiClient


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: configure logging and the CRM client."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    app.state.crm_client = CrmApiClient(
        base_url=settings.CRM_API_BASE_URL,
        token=settings.CRM_API_TOKEN,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    log.info(
        "startup.crm_client_initialized",
        base_url=settings.CRM_API_BASE_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )

    yield

    app.state.crm_client = None
    log.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Enquiry Timeline API",
        version="0.1.0",
        description="Cross-source activity timeline and onboarding status for enquiries",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    app.include_router(v1_router)

    return app


# Module-level app for uvicorn
app = create_app()
