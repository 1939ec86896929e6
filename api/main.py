"""
API - Application Factory.

============================================================
RESPONSIBILITY
============================================================
Builds the FastAPI application from already-constructed
collaborators. Nothing here reads the environment; app.py does
that and passes the results in.

- CORS with credentials (cookie sessions)
- Rate limiting on /api/ paths
- Error translation into the response envelope
- Router registration
- Closing outbound clients on shutdown

============================================================
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from access_control.documents import CloudinaryDocumentStore, DocumentStore
from access_control.router import router as user_router
from access_control.tokens import TokenIssuer
from api.errors import install_error_handlers
from api.rate_limit import RateLimiter, RateLimitMiddleware
from api.routers import admin, dashboard, health, settings as settings_router
from approval.locks import UserLockRegistry
from approval.router import router as approval_router
from core.clock import ClockProtocol, SystemClock
from core.config import AppSettings
from notifications.gateway import NotificationGateway, build_gateway
from storage.database import Database


logger = logging.getLogger(__name__)


def create_app(
    settings: AppSettings,
    database: Database,
    gateway: Optional[NotificationGateway] = None,
    documents: Optional[DocumentStore] = None,
    clock: Optional[ClockProtocol] = None,
) -> FastAPI:
    """
    Assemble the application.

    Args:
        settings: Loaded configuration
        database: Database handle (tables already created)
        gateway: Notification gateway; built from settings if omitted
        documents: Document store; Cloudinary if omitted
        clock: Time source; system clock if omitted

    Returns:
        FastAPI application
    """
    gateway = gateway or build_gateway(settings.email)
    documents = documents or CloudinaryDocumentStore(settings.documents)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Back office API starting ({settings.server.environment})")
        if not gateway.configured:
            logger.warning("No email provider configured - approvals will fail until one is set")
        yield
        await gateway.close()
        await documents.close()
        logger.info("Back office API stopped")

    app = FastAPI(
        title="Brokerage Back Office API",
        description="Account onboarding, approvals, cash ledger and positions.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.gateway = gateway
    app.state.documents = documents
    app.state.clock = clock or SystemClock()
    app.state.locks = UserLockRegistry()
    app.state.tokens = TokenIssuer(settings.auth)

    app.add_middleware(RateLimitMiddleware, limiter=RateLimiter(settings.rate_limit))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    install_error_handlers(app, expose_details=settings.server.is_development)

    # Include Routers
    app.include_router(health.router)
    app.include_router(user_router)
    app.include_router(dashboard.router)
    app.include_router(approval_router)
    app.include_router(admin.router)
    app.include_router(settings_router.router)

    return app
