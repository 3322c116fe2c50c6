"""Tests for the JWT token codec."""

import time
from uuid import uuid4

import jwt
import pytest

from scoopauth.services.tokens import (
    InvalidTokenError,
    TokenExpiredError,
    create_token,
    decode_unverified,
    issue_tokens,
    validate_access_token,
    validate_refresh_token,
)


class TestIssueTokens:
    """Tests for issuing token pairs."""

    def test_round_trip_recovers_user_id(self, test_settings):
        """Both tokens of a fresh pair validate back to the same user."""
        user_id = uuid4()
        pair = issue_tokens(user_id, test_settings)

        access = validate_access_token(pair.access_token, test_settings)
        refresh = validate_refresh_token(pair.refresh_token, test_settings)

        assert access["userId"] == str(user_id)
        assert refresh["userId"] == str(user_id)
        assert access["type"] == "access"
        assert refresh["type"] == "refresh"

    def test_standard_claims(self, test_settings):
        pair = issue_tokens(uuid4(), test_settings)
        payload = validate_access_token(pair.access_token, test_settings)

        assert payload["iss"] == "scoopsocials"
        assert payload["aud"] == "scoopsocials-api"
        assert payload["exp"] - payload["iat"] == test_settings.jwt_access_expiration

    def test_refresh_lifetime(self, test_settings):
        pair = issue_tokens(uuid4(), test_settings)
        payload = validate_refresh_token(pair.refresh_token, test_settings)

        assert payload["exp"] - payload["iat"] == 604800

    def test_pairs_issued_together_are_distinct(self, test_settings):
        """Two pairs for the same user in the same second differ."""
        user_id = uuid4()
        first = issue_tokens(user_id, test_settings)
        second = issue_tokens(user_id, test_settings)

        assert first.access_token != second.access_token
        assert first.refresh_token != second.refresh_token


class TestValidation:
    """Tests for access/refresh token validation."""

    def test_expired_token_reports_expiry(self, test_settings):
        """An expired token fails as expired, not as malformed."""
        token = create_token(uuid4(), "access", expires_in=-10, settings=test_settings)

        with pytest.raises(TokenExpiredError, match="Token expired"):
            validate_access_token(token, test_settings)

    def test_expired_refresh_token(self, test_settings):
        token = create_token(uuid4(), "refresh", expires_in=-10, settings=test_settings)

        with pytest.raises(TokenExpiredError, match="Refresh token expired"):
            validate_refresh_token(token, test_settings)

    def test_garbage_token_is_invalid(self, test_settings):
        with pytest.raises(InvalidTokenError):
            validate_access_token("not-a-jwt", test_settings)

    def test_wrong_secret_is_invalid(self, test_settings):
        token = jwt.encode(
            {
                "userId": "u1",
                "sub": "u1",
                "type": "access",
                "iat": int(time.time()),
                "exp": int(time.time()) + 60,
                "iss": "scoopsocials",
                "aud": "scoopsocials-api",
            },
            "some-other-secret-that-is-long-enough",
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError, match="Invalid token"):
            validate_access_token(token, test_settings)

    def test_refresh_token_rejected_as_access_token(self, test_settings):
        """Refresh tokens are signed with a different secret and cannot authenticate."""
        pair = issue_tokens(uuid4(), test_settings)

        with pytest.raises(InvalidTokenError):
            validate_access_token(pair.refresh_token, test_settings)

    def test_access_token_rejected_as_refresh_token(self, test_settings):
        pair = issue_tokens(uuid4(), test_settings)

        with pytest.raises(InvalidTokenError):
            validate_refresh_token(pair.access_token, test_settings)

    def test_type_claim_checked(self, test_settings):
        """A token signed with the access secret but typed refresh is rejected."""
        now = int(time.time())
        token = jwt.encode(
            {
                "userId": "u1",
                "sub": "u1",
                "type": "refresh",
                "iat": now,
                "exp": now + 60,
                "iss": "scoopsocials",
                "aud": "scoopsocials-api",
            },
            test_settings.jwt_secret,
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError, match="Not an access token"):
            validate_access_token(token, test_settings)

    def test_wrong_audience_is_invalid(self, test_settings):
        now = int(time.time())
        token = jwt.encode(
            {
                "userId": "u1",
                "sub": "u1",
                "type": "access",
                "iat": now,
                "exp": now + 60,
                "iss": "scoopsocials",
                "aud": "someone-else",
            },
            test_settings.jwt_secret,
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError):
            validate_access_token(token, test_settings)

    def test_missing_user_id_is_invalid(self, test_settings):
        now = int(time.time())
        token = jwt.encode(
            {
                "sub": "u1",
                "type": "access",
                "iat": now,
                "exp": now + 60,
                "iss": "scoopsocials",
                "aud": "scoopsocials-api",
            },
            test_settings.jwt_secret,
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError, match="missing user ID"):
            validate_access_token(token, test_settings)


class TestDecodeUnverified:
    def test_reads_claims_of_expired_token(self, test_settings):
        user_id = uuid4()
        token = create_token(user_id, "access", expires_in=-10, settings=test_settings)

        claims = decode_unverified(token)

        assert claims is not None
        assert claims["userId"] == str(user_id)

    def test_garbage_returns_none(self):
        assert decode_unverified("garbage") is None
