# ScoopSocials Auth Pydantic Schemas
from scoopauth.schemas.auth import (
    AuthenticatedResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    PhoneRequest,
    RefreshRequest,
    SendVerificationResponse,
    SignupRequest,
    SignupRequiredResponse,
    TokenPairResponse,
    UserResponse,
    VerifyPhoneRequest,
)

__all__ = [
    "AuthenticatedResponse",
    "LoginRequest",
    "LoginResponse",
    "MeResponse",
    "MessageResponse",
    "PhoneRequest",
    "RefreshRequest",
    "SendVerificationResponse",
    "SignupRequest",
    "SignupRequiredResponse",
    "TokenPairResponse",
    "UserResponse",
    "VerifyPhoneRequest",
]
