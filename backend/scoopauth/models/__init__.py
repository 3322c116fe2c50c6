# ScoopSocials Auth Models
from scoopauth.models.base import BaseModel
from scoopauth.models.refresh_token import RefreshToken
from scoopauth.models.user import AccountStatus, AccountType, User

__all__ = [
    "AccountStatus",
    "AccountType",
    "BaseModel",
    "RefreshToken",
    "User",
]
