"""Rate limiting for API and authentication endpoints.

Counters live in the shared cache so every worker sees the same totals. Each
counter is a fixed window keyed by identifier and window index; it expires on
its own when the window closes.
"""

import logging
import math
import time
from dataclasses import dataclass

from fastapi import Request, Response
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from scoopauth.api.error_handling import error_response
from scoopauth.core.cache import CacheStore
from scoopauth.core.errors import RateLimitError, ServiceUnavailableError
from scoopauth.core.logging import log_security_event
from scoopauth.core.request_utils import get_client_ip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one counted request."""

    allowed: bool
    remaining: int
    reset_time: int  # unix seconds when the current window closes
    limit: int

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time),
        }

    def retry_after(self) -> int:
        return max(1, self.reset_time - int(time.time()))


@dataclass(frozen=True)
class RateLimitPolicy:
    """Window size and allowance for one class of endpoint.

    ``fail_open`` decides what happens when the counter store is unreachable:
    general traffic is let through, sensitive endpoints are refused.
    """

    name: str
    window_seconds: int
    max_requests: int
    fail_open: bool = False
    message: str = "Too many requests, please try again later."


AUTH_POLICY = RateLimitPolicy(
    "auth", 300, 5, message="Too many login attempts, please try again later."
)
SIGNUP_POLICY = RateLimitPolicy(
    "signup", 3600, 3, message="Too many signup attempts, please try again later."
)
VERIFICATION_POLICY = RateLimitPolicy(
    "verification", 900, 3, message="Too many verification attempts, please try again later."
)
SENSITIVE_POLICY = RateLimitPolicy(
    "sensitive", 3600, 10, message="Too many sensitive operations, please try again later."
)

# (minimum trust score, requests per minute), highest tier first
TRUST_TIERS: tuple[tuple[int, int], ...] = ((80, 100), (50, 50), (20, 20), (0, 10))


def api_policy(window_seconds: int = 60, max_requests: int = 100) -> RateLimitPolicy:
    """General API policy; fails open."""
    return RateLimitPolicy("api", window_seconds, max_requests, fail_open=True)


def policy_for_trust_score(score: int) -> RateLimitPolicy:
    """Per-minute allowance scaled by the caller's trust score."""
    for threshold, per_minute in TRUST_TIERS:
        if score >= threshold:
            return RateLimitPolicy(f"trust_{threshold}", 60, per_minute, fail_open=True)
    return RateLimitPolicy("trust_0", 60, TRUST_TIERS[-1][1], fail_open=True)


class RateLimiter:
    """Fixed-window request counter.

    Admits up to twice the nominal rate across a window boundary. That
    approximation is accepted; a sliding log or token bucket would tighten it.
    """

    def __init__(self, cache: CacheStore) -> None:
        self.cache = cache

    @staticmethod
    def _key(identifier: str, window_seconds: int, now: float) -> str:
        return f"rate_limit:{identifier}:{math.floor(now / window_seconds)}"

    async def check_and_increment(
        self,
        identifier: str,
        window_seconds: int,
        max_requests: int,
    ) -> RateLimitResult:
        """Count one request against ``identifier``.

        Raises:
            RedisError: the counter store is unavailable
        """
        now = time.time()
        count, _ = await self.cache.increment(
            self._key(identifier, window_seconds, now), window_seconds
        )

        return RateLimitResult(
            allowed=count <= max_requests,
            remaining=max(0, max_requests - count),
            reset_time=(math.floor(now / window_seconds) + 1) * window_seconds,
            limit=max_requests,
        )

    async def enforce(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult | None:
        """Count a request under ``policy`` and raise if it is over the limit.

        Returns None when the store is down and the policy fails open.

        Raises:
            RateLimitError: the limit is exceeded
            ServiceUnavailableError: the store is down and the policy fails closed
        """
        key = f"{policy.name}:{identifier}"
        try:
            result = await self.check_and_increment(key, policy.window_seconds, policy.max_requests)
        except RedisError as e:
            if policy.fail_open:
                logger.warning(f"Rate limit store unavailable, allowing request ({policy.name}): {e}")
                return None
            logger.error(f"Rate limit store unavailable, refusing request ({policy.name}): {e}")
            raise ServiceUnavailableError("Rate limiting temporarily unavailable") from e

        if not result.allowed:
            log_security_event(
                "rate_limit_exceeded",
                policy=policy.name,
                identifier=identifier,
                limit=result.limit,
            )
            headers = result.headers()
            headers["Retry-After"] = str(result.retry_after())
            raise RateLimitError(policy.message, headers=headers)

        return result


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP limit for general API traffic.

    The limiter is read from ``app.state.rate_limiter`` at request time since
    the lifespan creates it after the middleware stack is built.
    """

    def __init__(
        self,
        app: ASGIApp,
        window_seconds: int = 60,
        max_requests: int = 100,
        path_prefix: str = "/api/",
        trusted_proxies: set[str] | None = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self.policy = api_policy(window_seconds, max_requests)
        self.path_prefix = path_prefix
        self.trusted_proxies = trusted_proxies or set()
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request with rate limiting."""
        limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
        if not self.enabled or limiter is None or not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        client_ip = get_client_ip(request, self.trusted_proxies)
        try:
            result = await limiter.enforce(client_ip, self.policy)
        except RateLimitError as e:
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
            return error_response(e)

        response = await call_next(request)

        if result is not None:
            for key, value in result.headers().items():
                response.headers[key] = value

        return response
