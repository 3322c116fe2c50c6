"""Pydantic schemas for the phone authentication API.

Wire format is camelCase; Python attributes stay snake_case.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from scoopauth.models.user import AccountType

PHONE_PATTERN = r"^\+[1-9]\d{1,14}$"
USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PhoneRequest(CamelModel):
    """Request to send a verification code."""

    phone: str = Field(
        ...,
        pattern=PHONE_PATTERN,
        description="Phone number in international format (+1234567890)",
    )


class VerifyPhoneRequest(CamelModel):
    phone: str = Field(..., pattern=PHONE_PATTERN)
    code: str = Field(..., min_length=6, max_length=6, description="6-digit verification code")


class SignupRequest(CamelModel):
    """Account details for a freshly verified phone."""

    phone: str = Field(..., pattern=PHONE_PATTERN)
    name: str = Field(..., min_length=2, max_length=100)
    username: str = Field(
        ...,
        min_length=3,
        max_length=30,
        pattern=USERNAME_PATTERN,
        description="Letters, numbers, underscores and hyphens",
    )
    email: EmailStr | None = Field(None, max_length=255)
    account_type: AccountType = AccountType.FREE
    bio: str | None = Field(None, max_length=500)
    occupation: str | None = Field(None, max_length=100)


class LoginRequest(CamelModel):
    phone: str = Field(..., pattern=PHONE_PATTERN)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    """Public view of an account."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    phone: str
    name: str
    username: str | None
    email: str | None
    bio: str | None
    occupation: str | None
    account_type: AccountType
    account_status: str
    trust_score: int
    phone_verified: bool
    onboarding_complete: bool
    created_at: datetime


class MessageResponse(CamelModel):
    message: str


class SendVerificationResponse(CamelModel):
    message: str
    expires_in: int


class TokenPairResponse(CamelModel):
    message: str
    access_token: str
    refresh_token: str


class AuthenticatedResponse(TokenPairResponse):
    """Tokens plus the account they were issued for."""

    user: UserResponse


class SignupRequiredResponse(CamelModel):
    """Verified phone with no account yet; the client should continue to signup."""

    message: str
    is_new_user: bool = True
    requires_signup: bool = True
    phone: str


class LoginResponse(CamelModel):
    message: str
    requires_phone_verification: bool = True
    user_id: UUID


class MeResponse(CamelModel):
    user: UserResponse
