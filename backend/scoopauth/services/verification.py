"""Phone verification codes.

One live code per phone, stored in the cache with a short TTL. Redemption is
a single compare-and-delete so a code can only ever be used once, even when
two requests present it concurrently.
"""

import logging
import secrets

from scoopauth.core.cache import CacheStore
from scoopauth.core.errors import ValidationError

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
DEFAULT_CODE_TTL = 300
DEFAULT_SIGNUP_WINDOW_TTL = 600


class CodeInvalidOrExpiredError(ValidationError):
    default_message = "Invalid or expired verification code"


def generate_verification_code(length: int = CODE_LENGTH) -> str:
    """Random numeric code, zero-padded to ``length`` digits."""
    return f"{secrets.randbelow(10**length):0{length}d}"


class VerificationCodeStore:
    """Issues and redeems phone verification codes."""

    def __init__(
        self,
        cache: CacheStore,
        code_ttl: int = DEFAULT_CODE_TTL,
        signup_window_ttl: int = DEFAULT_SIGNUP_WINDOW_TTL,
    ) -> None:
        self.cache = cache
        self.code_ttl = code_ttl
        self.signup_window_ttl = signup_window_ttl

    @staticmethod
    def _code_key(phone: str) -> str:
        return f"phone_verification:{phone}"

    @staticmethod
    def _verified_key(phone: str) -> str:
        return f"phone_verified:{phone}"

    async def issue_code(self, phone: str) -> str:
        """Generate a code for ``phone``, replacing any outstanding one."""
        code = generate_verification_code()
        await self.cache.set(self._code_key(phone), code, ttl=self.code_ttl)
        logger.debug(f"Verification code issued for {phone}")
        return code

    async def redeem_code(self, phone: str, code: str) -> None:
        """Consume the code for ``phone``.

        Raises:
            CodeInvalidOrExpiredError: no live code, or ``code`` does not match
        """
        if not code or not await self.cache.compare_and_delete(self._code_key(phone), code):
            raise CodeInvalidOrExpiredError()

    async def mark_phone_verified(self, phone: str) -> None:
        """Open the signup window for a freshly verified, unregistered phone."""
        await self.cache.set(self._verified_key(phone), "true", ttl=self.signup_window_ttl)

    async def is_phone_verified(self, phone: str) -> bool:
        return await self.cache.exists(self._verified_key(phone))

    async def consume_phone_verified(self, phone: str) -> bool:
        """Close the signup window. Returns False if it was not open."""
        return await self.cache.get_and_delete(self._verified_key(phone)) is not None
