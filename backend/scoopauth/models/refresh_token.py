"""Refresh token ledger - one row per redeemable refresh token."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scoopauth.models.base import BaseModel


class RefreshToken(BaseModel):
    """An issued refresh token.

    Rows are deleted on rotation, logout and expiry sweep. A token that is
    not in this table cannot be exchanged even if its signature is valid.
    """

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    user = relationship("User", back_populates="refresh_tokens", lazy="joined")

    def __repr__(self) -> str:
        return f"<RefreshToken user_id={self.user_id}>"
