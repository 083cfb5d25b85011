"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.database import close_db, database, init_db
from .core.exceptions import register_exception_handlers
from .core.middleware import setup_middleware
from .core.observability import (
    SERVICE_VERSION,
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import (
    auth_router,
    booking_router,
    contract_router,
    document_router,
    health_router,
    inspection_router,
    notification_router,
    payment_router,
    promotion_router,
    rental_history_router,
    renter_router,
    staff_router,
    station_router,
    vehicle_router,
)

# Configure structured logging
setup_structured_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Handles startup and shutdown events for the FastAPI application.
    """
    # Startup
    logger.info(
        "Starting EV rental API",
        extra={"environment": settings.environment, "debug": settings.debug}
    )

    try:
        # Setup observability
        setup_tracing()
        setup_metrics()
        logger.info("Observability setup completed")

        # Initialize database
        await init_db(create_tables=not settings.is_production)
        instrument_sqlalchemy(database.engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize application", extra={"error": str(e)}, exc_info=True)
        raise

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down EV rental API")
    await close_db()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="EV Rental API",
        description="REST API for an electric-vehicle rental platform: stations, fleet, bookings and payments",
        version=SERVICE_VERSION,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "traceparent", "tracestate"],
    )

    # Setup custom middleware
    setup_middleware(app, enable_logging=True)

    # Instrument FastAPI with OpenTelemetry
    instrument_fastapi(app)

    register_exception_handlers(app)

    # Register API routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(renter_router)
    app.include_router(staff_router)
    app.include_router(station_router)
    app.include_router(vehicle_router)
    app.include_router(booking_router)
    app.include_router(rental_history_router)
    app.include_router(payment_router)
    app.include_router(promotion_router)
    app.include_router(document_router)
    app.include_router(contract_router)
    app.include_router(inspection_router)
    app.include_router(notification_router)

    logger.info("FastAPI application created and configured")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "evrental.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
