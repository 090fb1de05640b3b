"""
Storefront order API

``create_app`` wires settings, database, payment gateway and clock into a
FastAPI application. Tests pass their own collaborators; ``app`` is the
process-wide instance served by uvicorn.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api import admin_api, cart_api, coupons_api, health_api, orders_api, payments_api
from storefront.core.config import Settings, get_settings
from storefront.core.database import Database
from storefront.core.error_handlers import setup_exception_handlers
from storefront.core.logging import setup_logging
from storefront.core.middleware import LoggingMiddleware
from storefront.services.payment_gateway import PaymentGateway, RazorpayGateway
from storefront.utils.date_utils import Clock, utcnow

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    gateway: Optional[PaymentGateway] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: configuration, defaults to the environment
        database: database handle, built from settings when omitted
        gateway: payment gateway client, Razorpay when omitted
        clock: source of "now" for the business windows

    Returns:
        FastAPI: configured application
    """
    settings = settings or get_settings()
    setup_logging(settings)

    owns_database = database is None
    database = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
        if settings.ENVIRONMENT != "production":
            database.create_all()
        yield
        if owns_database:
            database.dispose()
        logger.info("Application shut down")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.gateway = gateway or RazorpayGateway.from_settings(settings)
    app.state.clock = clock or utcnow

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    app.include_router(health_api.router)
    for module in (coupons_api, cart_api, orders_api, payments_api, admin_api):
        app.include_router(module.router, prefix=settings.API_PREFIX)

    return app


app = create_app()
