"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application.
It sets up all routes, shared state and exception handlers.

Design Decisions:
- Endpoint configuration is built once in create_app and never mutated
- One httpx client is shared by lookups and forwards for the app lifetime
- Use lifespan events for startup/shutdown
- Expose health check endpoints
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from webhook_relay import __version__
from webhook_relay.config import EndpointConfig, Settings, get_settings
from webhook_relay.logging_config import get_logger, setup_logging
from webhook_relay.services.relay import respond_json
from webhook_relay.webhook import router as webhook_router

# Initialize logging first
setup_logging()

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use, defaults to the cached environment settings
        http_client: Outbound client to use; one is created (and closed)
            by the lifespan when omitted

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    endpoints = EndpointConfig.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Application lifespan manager.

        Opens the shared HTTP client unless one was injected.
        """
        owns_client = http_client is None
        app.state.http_client = http_client or httpx.AsyncClient(
            timeout=settings.http_timeout
        )

        logger.info(
            "Starting webhook relay",
            host=settings.host,
            port=settings.port,
            targets=endpoints.configured_targets,
            verify_deliveries=bool(settings.github_webhook_secret)
        )
        if not endpoints.catch_all:
            logger.warning("No catch-all endpoint configured")

        yield

        logger.info("Shutting down webhook relay")
        if owns_client:
            await app.state.http_client.aclose()

    app = FastAPI(
        title="GitHub Discord Relay",
        description="Routes GitHub webhooks to per-project Discord channels",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    app.state.settings = settings
    app.state.endpoints = endpoints

    # Register routes
    app.include_router(webhook_router)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException
    ) -> JSONResponse:
        """Report HTTP errors in the same envelope as every other error."""
        response = respond_json(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "message": "Internal server error",
                "data": {"type": type(exc).__name__}
            }
        )

    @app.get("/")
    async def root():
        """Root endpoint with basic info."""
        return {
            "name": "GitHub Discord Relay",
            "version": __version__,
            "status": "running",
            "docs": "/docs"
        }

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint.

        Returns basic health status for load balancers and monitors.
        """
        return {
            "status": "healthy",
            "service": "github-discord-relay",
            "version": __version__
        }

    @app.get("/ready")
    async def readiness_check():
        """
        Readiness check endpoint.

        The relay is ready once a catch-all endpoint is configured, since
        every event can fall back to it.
        """
        if not endpoints.catch_all:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Not ready: no catch-all endpoint configured"
            )
        return {
            "status": "ready",
            "service": "github-discord-relay",
            "targets": endpoints.configured_targets
        }

    return app


# Create the application instance
app = create_app()
