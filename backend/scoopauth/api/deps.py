"""FastAPI dependencies that hand out the app-scoped components.

Connection handles and the components built on them are created once in the
lifespan and kept on ``app.state``. Request-scoped services wrap the
per-request database session.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from scoopauth.core.cache import CacheStore
from scoopauth.core.config import Settings
from scoopauth.core.database import get_db
from scoopauth.middleware.rate_limit import RateLimiter
from scoopauth.services.blacklist import TokenBlacklist
from scoopauth.services.security import SecurityMonitor
from scoopauth.services.sms import SmsGateway
from scoopauth.services.token_ledger import TokenLedger
from scoopauth.services.users import UserService
from scoopauth.services.verification import VerificationCodeStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> CacheStore:
    return request.app.state.cache


def get_verification_store(request: Request) -> VerificationCodeStore:
    return request.app.state.verification_store


def get_blacklist(request: Request) -> TokenBlacklist:
    return request.app.state.blacklist


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_security_monitor(request: Request) -> SecurityMonitor:
    return request.app.state.security_monitor


def get_sms_gateway(request: Request) -> SmsGateway:
    return request.app.state.sms_gateway


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    """Dependency to get user service."""
    return UserService(db)


def get_token_ledger(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> TokenLedger:
    """Dependency to get the refresh token ledger."""
    return TokenLedger(db, settings)
