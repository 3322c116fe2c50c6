"""Startup and shutdown for the auth service.

Builds every connection handle once and publishes it, together with the
components that use it, on ``app.state``.
"""

import asyncio
import logging

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scoopauth.core.cache import CacheStore, create_redis_client
from scoopauth.core.config import Settings
from scoopauth.core.database import create_engine, create_session_maker
from scoopauth.core.logging import get_logger, setup_logging
from scoopauth.middleware.rate_limit import RateLimiter
from scoopauth.services.blacklist import TokenBlacklist
from scoopauth.services.security import SecurityMonitor
from scoopauth.services.sms import build_sms_gateway
from scoopauth.services.token_ledger import TokenLedger
from scoopauth.services.verification import VerificationCodeStore

_logger = get_logger("lifespan")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.error(f"Background task {task.get_name()} failed: {exc}")


async def refresh_token_sweep_loop(
    session_maker: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> None:
    """Periodically remove expired refresh tokens from the ledger."""
    while True:
        await asyncio.sleep(settings.refresh_token_sweep_interval)
        try:
            async with session_maker() as db:
                await TokenLedger(db, settings).cleanup_expired()
        except SQLAlchemyError:
            _logger.exception("Error cleaning up expired refresh tokens")


def install_components(app: FastAPI, settings: Settings, cache: CacheStore) -> None:
    """Build the cache-backed components and attach them to ``app.state``."""
    state = app.state
    state.settings = settings
    state.cache = cache
    state.verification_store = VerificationCodeStore(
        cache,
        code_ttl=settings.verification_code_ttl,
        signup_window_ttl=settings.signup_window_ttl,
    )
    state.blacklist = TokenBlacklist(cache)
    state.rate_limiter = RateLimiter(cache)
    state.security_monitor = SecurityMonitor(cache, state.session_maker)
    state.sms_gateway = build_sms_gateway(settings)


async def startup(app: FastAPI, settings: Settings, logger: logging.Logger) -> list[asyncio.Task]:
    """Open connections, wire components and start background tasks.

    Returns the managed background tasks that ``shutdown`` cancels.
    """
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    engine = create_engine(settings)
    app.state.engine = engine
    app.state.session_maker = create_session_maker(engine)
    app.state.redis = create_redis_client(settings.redis_url)
    install_components(app, settings, CacheStore(app.state.redis))

    tasks: list[asyncio.Task] = []
    sweep_task = asyncio.create_task(
        refresh_token_sweep_loop(app.state.session_maker, settings),
        name="refresh_token_sweep",
    )
    sweep_task.add_done_callback(task_done_callback)
    tasks.append(sweep_task)
    return tasks


async def shutdown(app: FastAPI, logger: logging.Logger, tasks: list[asyncio.Task]) -> None:
    """Cancel background tasks and close connections."""
    for task in tasks:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    await app.state.cache.close()
    await app.state.engine.dispose()
    logger.info("Connections closed")
