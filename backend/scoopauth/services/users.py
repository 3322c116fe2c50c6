"""User service - account lookups and lifecycle changes."""

import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from scoopauth.models.base import utcnow
from scoopauth.models.user import AccountStatus, AccountType, User

logger = logging.getLogger(__name__)

CONFLICT_MESSAGES = {
    "phone": "Phone number already registered",
    "username": "Username already taken",
    "email": "Email already registered",
}


class UserService:
    """Service for reading and updating user accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: UUID) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_phone(self, phone: str) -> User | None:
        result = await self.db.execute(select(User).where(User.phone == phone))
        return result.scalar_one_or_none()

    async def find_conflict(
        self,
        phone: str,
        username: str | None = None,
        email: str | None = None,
    ) -> str | None:
        """Return the first unique field already taken by another account.

        Checked in order phone, username, email. None when all are free.
        """
        clauses = [User.phone == phone]
        if username:
            clauses.append(User.username == username)
        if email:
            clauses.append(User.email == email)

        result = await self.db.execute(select(User).where(or_(*clauses)))
        existing = list(result.scalars().all())

        if any(u.phone == phone for u in existing):
            return "phone"
        if username and any(u.username == username for u in existing):
            return "username"
        if email and any(u.email == email for u in existing):
            return "email"
        return None

    async def create(
        self,
        phone: str,
        name: str,
        username: str | None = None,
        email: str | None = None,
        account_type: AccountType = AccountType.FREE,
        bio: str | None = None,
        occupation: str | None = None,
        phone_verified: bool = True,
    ) -> User:
        """Create an account. Signup only creates accounts for verified phones."""
        user = User(
            phone=phone,
            name=name,
            username=username,
            email=email,
            account_type=AccountType(account_type).value,
            bio=bio,
            occupation=occupation,
            phone_verified=phone_verified,
            phone_verified_at=utcnow() if phone_verified else None,
            onboarding_complete=True,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        logger.info(f"New user created: {user.id} ({user.username})")
        return user

    async def mark_phone_verified(self, user: User) -> User:
        if not user.phone_verified:
            user.phone_verified = True
            user.phone_verified_at = utcnow()
            await self.db.flush()
        return user

    async def set_status(self, user_id: UUID, status: AccountStatus) -> User | None:
        """Change an account's status. Returns None for an unknown user."""
        user = await self.get_by_id(user_id)
        if not user:
            return None

        user.account_status = AccountStatus(status).value
        await self.db.flush()
        await self.db.refresh(user)
        return user
