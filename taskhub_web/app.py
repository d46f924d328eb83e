"""FastAPI application factory for the TaskHub API"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskhub.core.config import Settings, load_settings
from taskhub.core.container import Services
from taskhub.stores.base import StorageAdapter
from taskhub.utils.logger import get_logger, setup_logging

from . import auth_routes, task_routes, user_routes
from .errors import envelope, register_error_handlers
from .middleware import BodyLimitMiddleware, RateLimitMiddleware, SecurityHeadersMiddleware

logger = get_logger(__name__)

API_PREFIX = "/api/v1"


def create_app(settings: Optional[Settings] = None, storage: Optional[StorageAdapter] = None) -> FastAPI:
    """
    Build the API.

    settings defaults to load_settings() (environment + .env); storage
    defaults to the engine selected by settings.database_type.
    """
    settings = settings or load_settings()
    setup_logging(level=settings.log_level, fmt=settings.log_format, file_path=settings.log_file)

    services = Services.build(settings, storage)
    services.seed_admin()

    app = FastAPI(
        title="TaskHub API",
        description="Team task management with role-based access control",
        version="1.0.0",
    )
    app.state.services = services

    app.add_middleware(BodyLimitMiddleware, max_bytes=settings.body_limit_bytes)
    app.add_middleware(RateLimitMiddleware, limiter=services.rate_limiter)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_error_handlers(app)

    app.include_router(auth_routes.router, prefix=API_PREFIX)
    app.include_router(task_routes.router, prefix=API_PREFIX)
    app.include_router(user_routes.router, prefix=API_PREFIX)

    @app.get(f"{API_PREFIX}/health")
    async def health() -> JSONResponse:
        return envelope(
            "Server is running",
            {"timestamp": datetime.now(timezone.utc).isoformat(), "database": settings.database_type},
        )

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        services.storage.close()

    logger.info(
        "TaskHub API configured",
        database=settings.database_type,
        environment=settings.environment,
    )
    return app
