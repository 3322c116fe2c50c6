"""Access token deny-list for logout.

Entries expire exactly when the token they block would have expired, so the
list never needs pruning.
"""

import logging
import time

from redis.exceptions import RedisError

from scoopauth.core.cache import CacheStore
from scoopauth.services.tokens import decode_unverified

logger = logging.getLogger(__name__)


class TokenBlacklist:
    """Cache-backed set of revoked access tokens."""

    def __init__(self, cache: CacheStore) -> None:
        self.cache = cache

    @staticmethod
    def _key(token: str) -> str:
        return f"blacklist:{token}"

    async def blacklist(self, token: str) -> bool:
        """Deny ``token`` for the rest of its natural lifetime.

        Garbage or already-expired tokens are ignored. Cache failures are
        logged and do not break logout.

        Returns:
            True if an entry was written
        """
        payload = decode_unverified(token)
        exp = payload.get("exp") if payload else None
        if not isinstance(exp, (int, float)):
            return False

        ttl = int(exp - time.time())
        if ttl <= 0:
            return False

        try:
            await self.cache.set(self._key(token), "blacklisted", ttl=ttl)
        except RedisError as e:
            logger.error(f"Error blacklisting token: {e}")
            return False

        logger.debug(f"Token blacklisted for {ttl} seconds")
        return True

    async def is_blacklisted(self, token: str) -> bool:
        """Check whether ``token`` was revoked. Cache errors propagate."""
        return await self.cache.exists(self._key(token))
