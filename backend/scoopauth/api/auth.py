"""Phone authentication API endpoints.

Flow: send-verification -> verify-phone -> (signup for new phones) -> refresh
as needed -> logout. Access tokens are presented as ``Authorization: Bearer``.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status

from scoopauth.api.deps import (
    get_app_settings,
    get_blacklist,
    get_rate_limiter,
    get_security_monitor,
    get_sms_gateway,
    get_token_ledger,
    get_user_service,
    get_verification_store,
)
from scoopauth.core.config import Settings
from scoopauth.core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from scoopauth.core.logging import log_auth_event, log_security_event
from scoopauth.core.request_utils import get_bearer_token, get_client_ip, get_user_agent
from scoopauth.middleware.rate_limit import (
    AUTH_POLICY,
    SENSITIVE_POLICY,
    SIGNUP_POLICY,
    VERIFICATION_POLICY,
    RateLimiter,
    policy_for_trust_score,
)
from scoopauth.models.user import User
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
from scoopauth.services.blacklist import TokenBlacklist
from scoopauth.services.security import SecurityContext, SecurityMonitor
from scoopauth.services.sms import SmsGateway
from scoopauth.services.token_ledger import TokenLedger
from scoopauth.services.tokens import (
    InvalidTokenError,
    TokenExpiredError,
    decode_unverified,
    validate_access_token,
    validate_refresh_token,
)
from scoopauth.services.users import CONFLICT_MESSAGES, UserService
from scoopauth.services.verification import VerificationCodeStore

logger = logging.getLogger(__name__)

SMS_TEMPLATE = "Your ScoopSocials verification code is: {code}"

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _security_context(request: Request, user_id: str, settings: Settings) -> SecurityContext:
    return SecurityContext(
        user_id=user_id,
        ip=get_client_ip(request, settings.trusted_proxy_ips_set),
        user_agent=get_user_agent(request),
        endpoint=request.url.path,
        method=request.method,
    )


def _parse_user_id(value: object) -> UUID | None:
    try:
        return UUID(str(value))
    except ValueError:
        return None


async def _record_expired_token(
    token: str,
    request: Request,
    users: UserService,
    monitor: SecurityMonitor,
    settings: Settings,
) -> None:
    """Count an expired access token against its (authentic) owner."""
    claims = decode_unverified(token) or {}
    user_id = _parse_user_id(claims.get("userId"))
    if user_id is None or await users.get_by_id(user_id) is None:
        return
    await monitor.analyze(_security_context(request, str(user_id), settings), "auth_failed")


async def get_current_user(
    request: Request,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_app_settings),
    users: UserService = Depends(get_user_service),
    blacklist: TokenBlacklist = Depends(get_blacklist),
    monitor: SecurityMonitor = Depends(get_security_monitor),
) -> User:
    """Dependency to get the current authenticated user from the bearer token.

    Checks run in order: token present, signature and claims, not revoked,
    account exists and is active, no pending re-authentication or
    re-verification. Each authenticated request is then analysed by the
    security monitor after the response is sent.
    """
    token = get_bearer_token(request)
    if not token:
        raise UnauthorizedError("No token provided", headers={"WWW-Authenticate": "Bearer"})

    try:
        payload = validate_access_token(token, settings)
    except TokenExpiredError:
        # PyJWT checks the signature before expiry, so the claims are authentic
        await _record_expired_token(token, request, users, monitor, settings)
        raise
    except InvalidTokenError as e:
        log_security_event(
            "invalid_access_token",
            ip=get_client_ip(request, settings.trusted_proxy_ips_set),
            reason=str(e),
        )
        raise

    if await blacklist.is_blacklisted(token):
        raise UnauthorizedError("Token has been revoked", code="TOKEN_REVOKED")

    user_id = _parse_user_id(payload["userId"])
    if user_id is None:
        raise InvalidTokenError("Invalid token")

    user = await users.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not user.is_active:
        raise UnauthorizedError("Account is suspended or deactivated")

    if await monitor.requires_reauth(str(user.id)):
        raise UnauthorizedError("Re-authentication required", code="REAUTH_REQUIRED")
    required, reason = await monitor.requires_verification(str(user.id))
    if required:
        raise ForbiddenError(
            reason or "Additional verification required", code="VERIFICATION_REQUIRED"
        )

    background_tasks.add_task(
        monitor.analyze, _security_context(request, str(user.id), settings), "api_request"
    )
    return user


@router.post("/send-verification", response_model=SendVerificationResponse)
async def send_verification(
    body: PhoneRequest,
    codes: VerificationCodeStore = Depends(get_verification_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
    sms: SmsGateway = Depends(get_sms_gateway),
) -> SendVerificationResponse:
    """Text a one-time code to ``phone``."""
    await limiter.enforce(body.phone, AUTH_POLICY)

    code = await codes.issue_code(body.phone)
    await sms.send(body.phone, SMS_TEMPLATE.format(code=code))

    logger.info(f"Verification code sent to {body.phone}")
    return SendVerificationResponse(
        message="Verification code sent successfully",
        expires_in=codes.code_ttl,
    )


@router.post(
    "/verify-phone",
    response_model=AuthenticatedResponse | SignupRequiredResponse,
)
async def verify_phone(
    body: VerifyPhoneRequest,
    codes: VerificationCodeStore = Depends(get_verification_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
    users: UserService = Depends(get_user_service),
    ledger: TokenLedger = Depends(get_token_ledger),
    monitor: SecurityMonitor = Depends(get_security_monitor),
) -> AuthenticatedResponse | SignupRequiredResponse:
    """Redeem a code.

    Signs in an existing account, or opens the signup window for a new phone.
    """
    await limiter.enforce(body.phone, VERIFICATION_POLICY)
    await codes.redeem_code(body.phone, body.code)

    user = await users.get_by_phone(body.phone)
    if user is None:
        await codes.mark_phone_verified(body.phone)
        return SignupRequiredResponse(message="Phone verified successfully", phone=body.phone)

    if not user.is_active:
        raise UnauthorizedError("Account is suspended or deactivated")

    await users.mark_phone_verified(user)
    await monitor.clear_verification_requirement(str(user.id))
    tokens = await ledger.issue(user.id)

    log_auth_event("login", userId=str(user.id))
    return AuthenticatedResponse(
        message="Phone verified successfully",
        user=UserResponse.model_validate(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post(
    "/signup",
    response_model=AuthenticatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def signup(
    body: SignupRequest,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    codes: VerificationCodeStore = Depends(get_verification_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
    users: UserService = Depends(get_user_service),
    ledger: TokenLedger = Depends(get_token_ledger),
) -> AuthenticatedResponse:
    """Create an account for a phone verified within the signup window."""
    await limiter.enforce(get_client_ip(request, settings.trusted_proxy_ips_set), SIGNUP_POLICY)

    if not await codes.is_phone_verified(body.phone):
        raise ValidationError("Phone number must be verified before signup")

    conflict = await users.find_conflict(body.phone, body.username, body.email)
    if conflict:
        raise ConflictError(CONFLICT_MESSAGES[conflict])

    user = await users.create(
        phone=body.phone,
        name=body.name,
        username=body.username,
        email=body.email,
        account_type=body.account_type,
        bio=body.bio,
        occupation=body.occupation,
    )
    tokens = await ledger.issue(user.id)
    await codes.consume_phone_verified(body.phone)

    log_auth_event("signup", userId=str(user.id), accountType=user.account_type)
    return AuthenticatedResponse(
        message="Account created successfully",
        user=UserResponse.model_validate(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    limiter: RateLimiter = Depends(get_rate_limiter),
    users: UserService = Depends(get_user_service),
) -> LoginResponse:
    """Check that an account can sign in; the client then verifies the phone."""
    await limiter.enforce(body.phone, AUTH_POLICY)

    user = await users.get_by_phone(body.phone)
    if user is None:
        raise NotFoundError("User not found")
    if not user.is_active:
        raise UnauthorizedError("Account is suspended or deactivated")
    if not user.phone_verified:
        raise UnauthorizedError("Phone number not verified")

    return LoginResponse(
        message="User found. Please verify your phone number to continue.",
        user_id=user.id,
    )


@router.post("/refresh", response_model=TokenPairResponse)
async def refresh(
    body: RefreshRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_app_settings),
    ledger: TokenLedger = Depends(get_token_ledger),
    monitor: SecurityMonitor = Depends(get_security_monitor),
) -> TokenPairResponse:
    """Exchange a refresh token for a new pair. The presented token is spent."""
    payload = validate_refresh_token(body.refresh_token, settings)

    stored = await ledger.redeem(body.refresh_token)
    if stored is None or str(stored.user_id) != payload["userId"]:
        raise UnauthorizedError("Invalid or expired refresh token")
    if not stored.user.is_active:
        raise UnauthorizedError("Account is suspended or deactivated")

    user_id = stored.user_id
    tokens = await ledger.rotate(body.refresh_token, user_id)

    background_tasks.add_task(
        monitor.analyze, _security_context(request, str(user_id), settings), "token_refresh"
    )
    return TokenPairResponse(
        message="Tokens refreshed successfully",
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


async def _end_sessions(
    request: Request,
    user: User,
    blacklist: TokenBlacklist,
    ledger: TokenLedger,
) -> None:
    token = get_bearer_token(request)
    if token:
        await blacklist.blacklist(token)
    await ledger.revoke_all(user.id)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    user: User = Depends(get_current_user),
    blacklist: TokenBlacklist = Depends(get_blacklist),
    ledger: TokenLedger = Depends(get_token_ledger),
) -> MessageResponse:
    """Revoke the presented access token and every refresh token."""
    await _end_sessions(request, user, blacklist, ledger)
    logger.info(f"User {user.id} logged out successfully")
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    request: Request,
    user: User = Depends(get_current_user),
    limiter: RateLimiter = Depends(get_rate_limiter),
    blacklist: TokenBlacklist = Depends(get_blacklist),
    ledger: TokenLedger = Depends(get_token_ledger),
) -> MessageResponse:
    """Revoke the presented access token and sign out every device."""
    await limiter.enforce(str(user.id), SENSITIVE_POLICY)
    await _end_sessions(request, user, blacklist, ledger)
    logger.info(f"User {user.id} logged out from all devices")
    return MessageResponse(message="Logged out from all devices successfully")


@router.get("/me", response_model=MeResponse)
async def me(
    user: User = Depends(get_current_user),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> MeResponse:
    """Get the signed-in account."""
    await limiter.enforce(str(user.id), policy_for_trust_score(user.trust_score))
    return MeResponse(user=UserResponse.model_validate(user))
