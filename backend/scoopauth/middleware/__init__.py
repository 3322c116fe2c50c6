"""Middleware module for the ScoopSocials auth backend."""

from scoopauth.middleware.rate_limit import (
    AUTH_POLICY,
    SENSITIVE_POLICY,
    SIGNUP_POLICY,
    VERIFICATION_POLICY,
    RateLimiter,
    RateLimitMiddleware,
    RateLimitPolicy,
    RateLimitResult,
    api_policy,
    policy_for_trust_score,
)

__all__ = [
    "AUTH_POLICY",
    "SENSITIVE_POLICY",
    "SIGNUP_POLICY",
    "VERIFICATION_POLICY",
    "RateLimiter",
    "RateLimitMiddleware",
    "RateLimitPolicy",
    "RateLimitResult",
    "api_policy",
    "policy_for_trust_score",
]
