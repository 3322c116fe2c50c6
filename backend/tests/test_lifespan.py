"""Tests for component wiring and the refresh token sweep."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI

from scoopauth.core.lifespan import install_components, refresh_token_sweep_loop, task_done_callback
from scoopauth.middleware.rate_limit import RateLimiter
from scoopauth.models.refresh_token import RefreshToken
from scoopauth.services.blacklist import TokenBlacklist
from scoopauth.services.security import SecurityMonitor
from scoopauth.services.sms import ConsoleSmsGateway
from scoopauth.services.token_ledger import TokenLedger
from scoopauth.services.verification import VerificationCodeStore


def test_install_components(test_settings, cache):
    app = FastAPI()
    session_maker = MagicMock()
    app.state.session_maker = session_maker

    install_components(app, test_settings, cache)

    state = app.state
    assert state.settings is test_settings
    assert state.cache is cache
    assert isinstance(state.verification_store, VerificationCodeStore)
    assert state.verification_store.code_ttl == test_settings.verification_code_ttl
    assert isinstance(state.blacklist, TokenBlacklist)
    assert isinstance(state.rate_limiter, RateLimiter)
    assert isinstance(state.security_monitor, SecurityMonitor)
    assert state.security_monitor.session_maker is session_maker
    assert isinstance(state.sms_gateway, ConsoleSmsGateway)


@pytest.mark.asyncio
async def test_sweep_removes_expired_tokens(session_maker, db_session, user_factory, test_settings):
    user = await user_factory()
    live = await TokenLedger(db_session, test_settings).issue(user.id)
    db_session.add(
        RefreshToken(
            token="expired-token",
            user_id=user.id,
            expires_at=datetime.now(UTC) - timedelta(days=1),
        )
    )
    await db_session.commit()

    # One sweep, then stop the loop
    sleep = AsyncMock(side_effect=[None, asyncio.CancelledError()])
    with patch("scoopauth.core.lifespan.asyncio.sleep", sleep):
        with pytest.raises(asyncio.CancelledError):
            await refresh_token_sweep_loop(session_maker, test_settings)

    sleep.assert_awaited_with(test_settings.refresh_token_sweep_interval)
    async with session_maker() as session:
        ledger = TokenLedger(session, test_settings)
        assert await ledger.count_for_user(user.id) == 1
        assert await ledger.redeem(live.refresh_token) is not None


def test_task_done_callback_logs_failure():
    task = MagicMock()
    task.cancelled.return_value = False
    task.exception.return_value = RuntimeError("sweep crashed")
    task.get_name.return_value = "refresh_token_sweep"

    with patch("scoopauth.core.lifespan._logger") as mock_logger:
        task_done_callback(task)

    assert "sweep crashed" in str(mock_logger.error.call_args)


def test_task_done_callback_ignores_cancellation():
    task = MagicMock()
    task.cancelled.return_value = True

    with patch("scoopauth.core.lifespan._logger") as mock_logger:
        task_done_callback(task)

    mock_logger.error.assert_not_called()
