"""ScoopSocials Auth Backend - FastAPI Application Factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scoopauth.api.auth import router as auth_router
from scoopauth.api.error_handling import register_exception_handlers
from scoopauth.api.health import router as health_router
from scoopauth.core import settings
from scoopauth.core.lifespan import shutdown, startup
from scoopauth.core.logging import get_logger
from scoopauth.middleware import RateLimitMiddleware

# Import all models to ensure they're registered with Base for Alembic
from scoopauth.models import RefreshToken, User  # noqa: F401

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    tasks = await startup(app, settings, logger)

    yield

    logger.info("Shutting down...")
    await shutdown(app, logger, tasks)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Phone-verified authentication and session lifecycle for ScoopSocials",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    register_exception_handlers(app)

    # General per-IP limit on /api/*; auth endpoints add stricter limits of their own
    app.add_middleware(
        RateLimitMiddleware,
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.rate_limit_max_requests,
        trusted_proxies=settings.trusted_proxy_ips_set,
    )

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    # so that CORS headers are present on ALL responses, including 429s.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "X-Request-ID",
        ],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )

    if settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.include_router(health_router)  # Health at root level
    app.include_router(auth_router)  # Auth at /api/auth

    return app


# Application instance
app = create_app()
