"""Per-user security event log and anomaly detection.

Every authenticated request appends an event to a short, capped history in
the cache and runs a fixed set of rules over it. A rule that fires is itself
recorded as a ``suspicious_activity`` event and triggers its corrective
action: revoke the user's sessions, require re-verification, or just log.

Detection favours availability: if the event store is unreachable the
request goes ahead and the failure is reported in the ``MonitorResult``.
"""

import json
import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scoopauth.core.cache import CacheStore
from scoopauth.core.errors import NotFoundError, TokenRotationError
from scoopauth.core.logging import log_auth_event, log_security_event
from scoopauth.models.user import AccountStatus
from scoopauth.services.token_ledger import TokenLedger
from scoopauth.services.users import UserService

logger = logging.getLogger(__name__)

MAX_EVENTS_PER_USER = 100
EVENT_WINDOW_SECONDS = 3600
FLAG_TTL_SECONDS = 3600


@dataclass
class SecurityContext:
    """Who made a request, from where, and when."""

    user_id: str
    ip: str
    user_agent: str
    endpoint: str
    method: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class SecurityEvent:
    user_id: str
    type: str
    severity: str
    ip: str
    user_agent: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(
            {
                "userId": self.user_id,
                "type": self.type,
                "severity": self.severity,
                "ip": self.ip,
                "userAgent": self.user_agent,
                "timestamp": self.timestamp.isoformat(),
                "metadata": self.metadata,
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> "SecurityEvent":
        data = json.loads(raw)
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return cls(
            user_id=data["userId"],
            type=data["type"],
            severity=data.get("severity", "info"),
            ip=data.get("ip", "unknown"),
            user_agent=data.get("userAgent", ""),
            timestamp=timestamp,
            metadata=data.get("metadata") or {},
        )


class PatternAction(str, Enum):
    LOG = "log"
    ROTATE_TOKENS = "rotate_tokens"
    BLOCK_USER = "block_user"
    REQUIRE_VERIFICATION = "require_verification"


PatternCheck = Callable[[SecurityContext, Sequence[SecurityEvent]], bool]


@dataclass(frozen=True)
class SuspiciousPattern:
    name: str
    severity: str
    action: PatternAction
    check: PatternCheck


@dataclass
class MonitorResult:
    """Outcome of a monitor call.

    ``evaluated`` is False when the event store could not be used, which is
    different from "evaluated and nothing fired".
    """

    evaluated: bool
    triggered: list[str] = field(default_factory=list)
    error: str | None = None
    events: list[SecurityEvent] = field(default_factory=list)


def _within(events: Sequence[SecurityEvent], now: datetime, seconds: int) -> list[SecurityEvent]:
    cutoff = now - timedelta(seconds=seconds)
    return [e for e in events if e.timestamp > cutoff]


def _rapid_token_refresh(context: SecurityContext, history: Sequence[SecurityEvent]) -> bool:
    recent = _within(history, context.timestamp, 5 * 60)
    return sum(1 for e in recent if e.type == "token_refresh") > 10


def _multiple_ip_addresses(context: SecurityContext, history: Sequence[SecurityEvent]) -> bool:
    return len({e.ip for e in _within(history, context.timestamp, 30 * 60)}) > 5


_AUTOMATED_AGENT = re.compile(r"bot|crawler|spider|curl|wget|python|postman", re.IGNORECASE)


def _suspicious_user_agent(context: SecurityContext, history: Sequence[SecurityEvent]) -> bool:
    agent = context.user_agent or ""
    return len(agent) <= 10 or bool(_AUTOMATED_AGENT.search(agent))


def _frequent_failed_auth(context: SecurityContext, history: Sequence[SecurityEvent]) -> bool:
    recent = _within(history, context.timestamp, 15 * 60)
    return sum(1 for e in recent if e.type == "auth_failed") > 5


def _impossible_travel(context: SecurityContext, history: Sequence[SecurityEvent]) -> bool:
    # Distinct addresses stand in for geolocation
    return len({e.ip for e in _within(history, context.timestamp, 60 * 60)}) > 3


PATTERNS: tuple[SuspiciousPattern, ...] = (
    SuspiciousPattern("rapid_token_refresh", "medium", PatternAction.ROTATE_TOKENS, _rapid_token_refresh),
    SuspiciousPattern("multiple_ip_addresses", "high", PatternAction.ROTATE_TOKENS, _multiple_ip_addresses),
    SuspiciousPattern("suspicious_user_agent", "medium", PatternAction.LOG, _suspicious_user_agent),
    SuspiciousPattern(
        "frequent_failed_auth", "high", PatternAction.REQUIRE_VERIFICATION, _frequent_failed_auth
    ),
    SuspiciousPattern("impossible_travel", "critical", PatternAction.ROTATE_TOKENS, _impossible_travel),
)


class SecurityMonitor:
    """Records security events and acts on suspicious patterns.

    Uses its own database sessions so it can run after the request that
    triggered it has finished.
    """

    def __init__(
        self,
        cache: CacheStore,
        session_maker: async_sessionmaker[AsyncSession],
        patterns: Sequence[SuspiciousPattern] = PATTERNS,
    ) -> None:
        self.cache = cache
        self.session_maker = session_maker
        self.patterns = tuple(patterns)

    @staticmethod
    def _events_key(user_id: str) -> str:
        return f"security_events:{user_id}"

    @staticmethod
    def _reauth_key(user_id: str) -> str:
        return f"require_reauth:{user_id}"

    @staticmethod
    def _verification_key(user_id: str) -> str:
        return f"require_verification:{user_id}"

    async def record_event(
        self,
        user_id: str,
        event_type: str,
        severity: str,
        context: SecurityContext,
        metadata: dict[str, Any] | None = None,
    ) -> MonitorResult:
        """Prepend an event to the user's history, keeping the newest 100."""
        event = SecurityEvent(
            user_id=user_id,
            type=event_type,
            severity=severity,
            ip=context.ip,
            user_agent=context.user_agent,
            timestamp=context.timestamp,
            metadata={"endpoint": context.endpoint, "method": context.method, **(metadata or {})},
        )
        try:
            await self.cache.push_capped(
                self._events_key(user_id),
                event.to_json(),
                max_length=MAX_EVENTS_PER_USER,
                ttl=EVENT_WINDOW_SECONDS,
            )
        except RedisError as e:
            log_security_event(
                "redis_security_event_failed", userId=user_id, eventType=event_type, error=str(e)
            )
            return MonitorResult(evaluated=False, error=str(e))
        return MonitorResult(evaluated=True, events=[event])

    async def get_history(self, user_id: str) -> MonitorResult:
        """Load the user's events, newest first. Unreadable entries are skipped."""
        try:
            raw_events = await self.cache.list_range(self._events_key(user_id))
        except RedisError as e:
            log_security_event("redis_security_history_failed", userId=user_id, error=str(e))
            return MonitorResult(evaluated=False, error=str(e))

        events = []
        for raw in raw_events:
            try:
                events.append(SecurityEvent.from_json(raw))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed security event for user {user_id}: {e}")
        return MonitorResult(evaluated=True, events=events)

    async def analyze(self, context: SecurityContext, event_type: str) -> MonitorResult:
        """Record ``event_type`` for the context's user and evaluate every rule.

        Rules are independent; several can fire on one call. Failures are
        logged and reported in the result, never raised.
        """
        user_id = context.user_id
        recorded = await self.record_event(user_id, event_type, "info", context)
        if not recorded.evaluated:
            return recorded

        history = await self.get_history(user_id)
        if not history.evaluated:
            return history

        result = MonitorResult(evaluated=True, events=history.events)
        for pattern in self.patterns:
            if not pattern.check(context, history.events):
                continue
            result.triggered.append(pattern.name)
            try:
                await self._handle_suspicious_activity(pattern, context)
            except (TokenRotationError, RedisError, SQLAlchemyError) as e:
                logger.error(f"Security action {pattern.action.value} failed for user {user_id}: {e}")
                result.error = str(e)
        return result

    async def _handle_suspicious_activity(
        self, pattern: SuspiciousPattern, context: SecurityContext
    ) -> None:
        user_id = context.user_id
        log_security_event(
            "suspicious_activity_detected",
            userId=user_id,
            pattern=pattern.name,
            severity=pattern.severity,
            ip=context.ip,
            userAgent=context.user_agent,
            endpoint=context.endpoint,
            action=pattern.action.value,
        )
        await self.record_event(
            user_id,
            "suspicious_activity",
            pattern.severity,
            context,
            metadata={"pattern": pattern.name},
        )

        reason = f"Suspicious activity: {pattern.name}"
        if pattern.action is PatternAction.ROTATE_TOKENS:
            await self._rotate_user_tokens(user_id, reason)
        elif pattern.action is PatternAction.BLOCK_USER:
            await self.block_user(user_id, reason)
        elif pattern.action is PatternAction.REQUIRE_VERIFICATION:
            await self._require_verification(user_id, reason)

    async def _rotate_user_tokens(self, user_id: str, reason: str) -> int:
        """Revoke every refresh token and force re-authentication.

        Raises:
            TokenRotationError: the revocation could not be completed
        """
        log_auth_event("forced_token_rotation", userId=user_id, reason=reason)
        try:
            async with self.session_maker() as session:
                revoked = await TokenLedger(session).revoke_all(UUID(user_id))
            await self.cache.set(self._reauth_key(user_id), "true", ttl=FLAG_TTL_SECONDS)
        except TokenRotationError as e:
            log_security_event("token_rotation_failed", userId=user_id, reason=reason, error=str(e))
            raise
        except RedisError as e:
            log_security_event("token_rotation_failed", userId=user_id, reason=reason, error=str(e))
            raise TokenRotationError() from e

        log_security_event(
            "tokens_rotated", userId=user_id, reason=reason, refreshTokensRevoked=revoked
        )
        return revoked

    async def _require_verification(self, user_id: str, reason: str) -> None:
        try:
            await self.cache.set(self._verification_key(user_id), reason, ttl=FLAG_TTL_SECONDS)
        except RedisError as e:
            log_security_event(
                "verification_requirement_failed", userId=user_id, reason=reason, error=str(e)
            )
            raise
        log_security_event("verification_required", userId=user_id, reason=reason)

    async def block_user(self, user_id: str, reason: str) -> None:
        """Suspend an account and revoke all of its sessions.

        Raises:
            NotFoundError: no such user
            TokenRotationError: the account was suspended but revocation failed
        """
        try:
            async with self.session_maker() as session:
                user = await UserService(session).set_status(UUID(user_id), AccountStatus.SUSPENDED)
                await session.commit()
        except SQLAlchemyError as e:
            log_security_event("user_block_failed", userId=user_id, reason=reason, error=str(e))
            raise
        if user is None:
            raise NotFoundError("User not found")

        await self._rotate_user_tokens(user_id, reason)
        log_security_event("user_blocked", userId=user_id, reason=reason)

    async def requires_verification(self, user_id: str) -> tuple[bool, str | None]:
        """Check the re-verification flag. Store errors read as "not required"."""
        try:
            reason = await self.cache.get(self._verification_key(user_id))
        except RedisError as e:
            logger.warning(f"Could not read verification flag for user {user_id}: {e}")
            return False, None
        return bool(reason), reason or None

    async def requires_reauth(self, user_id: str) -> bool:
        """Check the re-authentication flag. Store errors read as "not required"."""
        try:
            return bool(await self.cache.get(self._reauth_key(user_id)))
        except RedisError as e:
            logger.warning(f"Could not read reauth flag for user {user_id}: {e}")
            return False

    async def clear_verification_requirement(self, user_id: str) -> None:
        """Drop both flags after the user has re-verified their phone."""
        try:
            await self.cache.delete(self._verification_key(user_id))
            await self.cache.delete(self._reauth_key(user_id))
        except RedisError as e:
            log_security_event("clear_verification_failed", userId=user_id, error=str(e))
