"""User model for phone-verified accounts."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scoopauth.models.base import BaseModel, utcnow


class AccountType(str, Enum):
    FREE = "FREE"
    PROFESSIONAL = "PROFESSIONAL"
    VENUE = "VENUE"


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class User(BaseModel):
    """A ScoopSocials account.

    The phone number is the primary identity and must be verified by SMS
    code before tokens are issued. Accounts are suspended, never deleted,
    by the auth service.
    """

    __tablename__ = "users"

    phone: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    username: Mapped[str | None] = mapped_column(String(30), nullable=True, unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    occupation: Mapped[str | None] = mapped_column(String(100), nullable=True)

    account_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AccountType.FREE.value
    )
    account_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AccountStatus.ACTIVE.value
    )
    trust_score: Mapped[int] = mapped_column(Integer, nullable=False, default=50)

    phone_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    phone_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    onboarding_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_active(self) -> bool:
        return self.account_status == AccountStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<User {self.username or self.phone}>"
