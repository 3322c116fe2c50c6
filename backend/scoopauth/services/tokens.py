"""JWT codec for access and refresh tokens.

Pure computation over the configured secrets: no database or cache access.
Access and refresh tokens are signed with different secrets so holding one
never lets a client forge the other.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal
from uuid import UUID

import jwt
from jwt.exceptions import PyJWTError

from scoopauth.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

TokenType = Literal["access", "refresh"]

_REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "sub"]


class TokenError(Exception):
    """JWT token error."""

    pass


class TokenExpiredError(TokenError):
    """JWT token has expired."""

    pass


class InvalidTokenError(TokenError):
    """JWT token is invalid."""

    pass


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def _secret_for(token_type: TokenType, settings: Settings) -> str:
    if token_type == "access":
        return settings.jwt_secret
    return settings.jwt_refresh_secret


def _lifetime_for(token_type: TokenType, settings: Settings) -> int:
    if token_type == "access":
        return settings.jwt_access_expiration
    return settings.jwt_refresh_expiration


def create_token(
    user_id: UUID | str,
    token_type: TokenType,
    *,
    expires_in: int | None = None,
    settings: Settings | None = None,
) -> str:
    """Sign a token for ``user_id``.

    ``expires_in`` overrides the configured lifetime in seconds and may be
    negative, which yields an already-expired token.
    """
    settings = settings or get_settings()
    lifetime = _lifetime_for(token_type, settings) if expires_in is None else expires_in
    now = datetime.now(UTC)
    payload = {
        "userId": str(user_id),
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(seconds=lifetime),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "type": token_type,
        # Distinguishes pairs minted for the same user within one second
        "jti": secrets.token_hex(16),
    }
    token = jwt.encode(
        payload,
        _secret_for(token_type, settings),
        algorithm=settings.jwt_algorithm,
    )
    return str(token)


def issue_tokens(user_id: UUID | str, settings: Settings | None = None) -> TokenPair:
    """Create an access and refresh token pair for a user."""
    settings = settings or get_settings()
    return TokenPair(
        access_token=create_token(user_id, "access", settings=settings),
        refresh_token=create_token(user_id, "refresh", settings=settings),
    )


def _decode(token: str, token_type: TokenType, settings: Settings) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            _secret_for(token_type, settings),
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError as e:
        if token_type == "access":
            raise TokenExpiredError("Token expired") from e
        raise TokenExpiredError("Refresh token expired") from e
    except PyJWTError as e:
        if token_type == "access":
            raise InvalidTokenError("Invalid token") from e
        raise InvalidTokenError("Invalid refresh token") from e

    if payload.get("type") != token_type:
        raise InvalidTokenError("Not an access token" if token_type == "access" else "Not a refresh token")
    if not payload.get("userId"):
        raise InvalidTokenError("Token missing user ID")
    return payload


def validate_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """Validate an access token and return its payload."""
    return _decode(token, "access", settings or get_settings())


def validate_refresh_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """Validate a refresh token and return its payload."""
    return _decode(token, "refresh", settings or get_settings())


def decode_unverified(token: str) -> dict[str, Any] | None:
    """Read a token's claims without checking its signature or expiry.

    Returns None when the token is not a decodable JWT.
    """
    try:
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False, "verify_aud": False},
        )
    except PyJWTError:
        return None
