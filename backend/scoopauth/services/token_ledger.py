"""Refresh token ledger and rotation."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scoopauth.core.config import Settings, get_settings
from scoopauth.core.errors import TokenRotationError
from scoopauth.core.logging import log_auth_event
from scoopauth.models.refresh_token import RefreshToken
from scoopauth.services.tokens import InvalidTokenError, TokenPair, issue_tokens

logger = logging.getLogger(__name__)


class TokenLedger:
    """Durable record of redeemable refresh tokens.

    Each refresh token can be exchanged exactly once: rotation deletes the
    presented row with a single conditional DELETE and only the caller that
    actually removed it gets a successor pair.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    def _expiry(self) -> datetime:
        return datetime.now(UTC) + timedelta(seconds=self.settings.jwt_refresh_expiration)

    async def issue(self, user_id: UUID) -> TokenPair:
        """Mint a token pair and record its refresh token."""
        tokens = issue_tokens(user_id, self.settings)
        self.session.add(
            RefreshToken(token=tokens.refresh_token, user_id=user_id, expires_at=self._expiry())
        )
        await self.session.commit()
        return tokens

    async def redeem(self, token: str) -> RefreshToken | None:
        """Look up a live ledger row (with its user) for ``token``."""
        now = datetime.now(UTC)
        result = await self.session.execute(
            select(RefreshToken).where(RefreshToken.token == token, RefreshToken.expires_at > now)
        )
        return result.scalar_one_or_none()

    async def rotate(self, old_token: str, user_id: UUID) -> TokenPair:
        """Replace ``old_token`` with a fresh pair.

        Raises:
            InvalidTokenError: ``old_token`` was already rotated or revoked
            TokenRotationError: the store failed part-way through
        """
        try:
            result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
                delete(RefreshToken).where(
                    RefreshToken.token == old_token,
                    RefreshToken.user_id == user_id,
                )
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error rotating refresh token for user {user_id}: {e}")
            raise TokenRotationError("Failed to rotate refresh token") from e

        if result.rowcount == 0:
            await self.session.rollback()
            raise InvalidTokenError("Refresh token has already been used or revoked")

        tokens = issue_tokens(user_id, self.settings)
        try:
            self.session.add(
                RefreshToken(token=tokens.refresh_token, user_id=user_id, expires_at=self._expiry())
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error storing rotated refresh token for user {user_id}: {e}")
            raise TokenRotationError("Failed to rotate refresh token") from e

        logger.info(f"Refresh token rotated for user {user_id}")
        return tokens

    async def revoke_all(self, user_id: UUID) -> int:
        """Delete every refresh token for a user. Returns count removed."""
        try:
            result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
                delete(RefreshToken).where(RefreshToken.user_id == user_id)
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error revoking tokens for user {user_id}: {e}")
            raise TokenRotationError("Failed to revoke user tokens") from e

        log_auth_event("refresh_tokens_revoked", userId=str(user_id), count=result.rowcount)
        return result.rowcount

    async def count_for_user(self, user_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(RefreshToken.id)).where(RefreshToken.user_id == user_id)
        )
        return result.scalar() or 0

    async def cleanup_expired(self) -> int:
        """Remove ledger rows past their expiry. Returns count removed."""
        now = datetime.now(UTC)
        result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
            delete(RefreshToken).where(RefreshToken.expires_at < now)
        )
        await self.session.commit()
        if result.rowcount:
            logger.info(f"Cleaned up {result.rowcount} expired refresh tokens")
        return result.rowcount
