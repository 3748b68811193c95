"""FastAPI application entry point and lifecycle management."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clip_storefront.config import Config, get_config
from clip_storefront.database import Database
from clip_storefront.errors import BadRequest, InternalError, StorefrontError
from clip_storefront.logging_config import configure_from_env, get_logger
from clip_storefront.middleware import ContextMiddleware, RequestLoggingMiddleware
from clip_storefront.models.api_response import HealthResponse
from clip_storefront.services.catalog_service import CatalogService
from clip_storefront.services.checkout_service import CheckoutService
from clip_storefront.services.download_service import DownloadService
from clip_storefront.services.payment_gateway import PaymentGateway
from clip_storefront.services.time_controller import TimeController, get_time_controller
from clip_storefront.services.webhook_handler import WebhookHandler

VERSION = "0.1.0"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Handles startup and shutdown events.
    """
    config: Config = app.state.config
    database: Database = app.state.database
    logger.info("storefront_starting", version=VERSION, store=config.store.name)

    try:
        if config.database.auto_create_schema:
            database.create_schema()
        logger.info("storefront_started", status="ready", database=repr(database))
        yield
    finally:
        logger.info("storefront_shutting_down")
        if app.state.owns_database:
            database.dispose()
        logger.info("storefront_stopped")


def create_app(
    config: Optional[Config] = None,
    gateway: Optional[PaymentGateway] = None,
    database: Optional[Database] = None,
    time_controller: Optional[TimeController] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Every collaborator can be injected; anything not given is built from
    configuration. A missing payment secret fails here, not on first request.

    Args:
        config: Storefront configuration (defaults to the global instance)
        gateway: Payment gateway client
        database: Relational store
        time_controller: Clock used for credential expiry

    Returns:
        Configured FastAPI application instance

    Raises:
        ConfigurationError: If the payment gateway secrets are not set
    """
    configure_from_env()

    config = config if config is not None else get_config()
    gateway = gateway if gateway is not None else PaymentGateway.from_config(config)
    owns_database = database is None
    if database is None:
        database = Database.from_settings(config.database)
    clock = time_controller if time_controller is not None else get_time_controller()

    app = FastAPI(
        title="Clip Storefront",
        description="Pay-per-clip storefront: checkout, payment webhook and token-gated downloads",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.database = database
    app.state.owns_database = owns_database
    app.state.gateway = gateway
    app.state.checkout_service = CheckoutService(database, gateway, config)
    app.state.webhook_handler = WebhookHandler(database, gateway, config, clock)
    app.state.download_service = DownloadService(database, config, clock)
    app.state.catalog_service = CatalogService(database, config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.public_base_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    include_request_details = os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true"
    app.add_middleware(RequestLoggingMiddleware, include_request_details=include_request_details)
    app.add_middleware(ContextMiddleware)

    from clip_storefront.api.catalog import router as catalog_router
    from clip_storefront.api.storefront import router as storefront_router

    app.include_router(storefront_router)
    app.include_router(catalog_router)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        """Liveness plus database reachability."""
        reachable = app.state.database.ping()
        return HealthResponse(
            status="healthy" if reachable else "degraded",
            database="connected" if reachable else "unreachable",
        )

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "request_error",
                error=exc.message,
                error_type=type(exc).__name__,
                path=request.url.path,
            )
        else:
            logger.info(
                "request_rejected",
                error=exc.message,
                error_type=type(exc).__name__,
                status_code=exc.status_code,
            )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
        error = BadRequest("Invalid request body")
        return JSONResponse(status_code=error.status_code, content={"error": error.message})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content={"error": error.message})

    logger.info("app_created", endpoints=len(app.routes))
    return app
