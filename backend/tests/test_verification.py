"""Tests for the phone verification code store."""

import asyncio
from unittest.mock import patch

import pytest

from scoopauth.services.verification import (
    CodeInvalidOrExpiredError,
    VerificationCodeStore,
    generate_verification_code,
)

PHONE = "+15551234567"


@pytest.fixture
def store(cache):
    return VerificationCodeStore(cache)


class TestGenerateCode:
    def test_six_digits(self):
        for _ in range(50):
            code = generate_verification_code()
            assert len(code) == 6
            assert code.isdigit()

    def test_zero_padded(self):
        with patch("scoopauth.services.verification.secrets.randbelow", return_value=42):
            assert generate_verification_code() == "000042"


class TestVerificationCodeStore:
    @pytest.mark.asyncio
    async def test_issue_stores_code_with_ttl(self, store, cache):
        code = await store.issue_code(PHONE)

        assert await cache.get(f"phone_verification:{PHONE}") == code
        assert 299 <= await cache.ttl(f"phone_verification:{PHONE}") <= 300

    @pytest.mark.asyncio
    async def test_new_code_replaces_previous(self, store):
        with patch(
            "scoopauth.services.verification.generate_verification_code",
            side_effect=["111111", "222222"],
        ):
            await store.issue_code(PHONE)
            await store.issue_code(PHONE)

        with pytest.raises(CodeInvalidOrExpiredError):
            await store.redeem_code(PHONE, "111111")
        await store.redeem_code(PHONE, "222222")

    @pytest.mark.asyncio
    async def test_code_is_single_use(self, store):
        """A code that was redeemed once cannot be redeemed again."""
        code = await store.issue_code(PHONE)

        await store.redeem_code(PHONE, code)

        with pytest.raises(CodeInvalidOrExpiredError, match="Invalid or expired verification code"):
            await store.redeem_code(PHONE, code)

    @pytest.mark.asyncio
    async def test_wrong_code_keeps_stored_code(self, store):
        code = await store.issue_code(PHONE)
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(CodeInvalidOrExpiredError):
            await store.redeem_code(PHONE, wrong)

        await store.redeem_code(PHONE, code)

    @pytest.mark.asyncio
    async def test_missing_code(self, store):
        with pytest.raises(CodeInvalidOrExpiredError):
            await store.redeem_code(PHONE, "123456")

    @pytest.mark.asyncio
    async def test_concurrent_redemptions_only_one_wins(self, store):
        code = await store.issue_code(PHONE)

        results = await asyncio.gather(
            store.redeem_code(PHONE, code),
            store.redeem_code(PHONE, code),
            store.redeem_code(PHONE, code),
            return_exceptions=True,
        )

        assert sum(1 for r in results if r is None) == 1
        assert sum(1 for r in results if isinstance(r, CodeInvalidOrExpiredError)) == 2

    @pytest.mark.asyncio
    async def test_error_is_400(self):
        error = CodeInvalidOrExpiredError()
        assert error.status_code == 400
        assert error.code == "VALIDATION_ERROR"


class TestSignupWindow:
    @pytest.mark.asyncio
    async def test_mark_and_consume(self, store, cache):
        await store.mark_phone_verified(PHONE)

        assert await store.is_phone_verified(PHONE) is True
        assert 599 <= await cache.ttl(f"phone_verified:{PHONE}") <= 600

        assert await store.consume_phone_verified(PHONE) is True
        assert await store.is_phone_verified(PHONE) is False
        assert await store.consume_phone_verified(PHONE) is False
