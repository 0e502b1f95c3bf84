"""
Identity Context - Accounts and credentials.

This bounded context is responsible for:
- Registering users with unique usernames and emails
- Hashing passwords and checking credentials
- Issuing, rotating and revoking tokens
"""

from .entities import User, UserPreferences
from .repositories import UserRepository
from .security import (
    Principal,
    IssuedToken,
    PasswordHasher,
    TokenClaims,
    TokenCodec,
    TokenExpired,
    TokenKind,
    TokenMalformed,
    TokenPair,
    TokenRejected,
)
from .services import IdentityService

__all__ = [
    "User",
    "UserPreferences",
    "UserRepository",
    "IssuedToken",
    "Principal",
    "PasswordHasher",
    "TokenClaims",
    "TokenCodec",
    "TokenExpired",
    "TokenKind",
    "TokenMalformed",
    "TokenPair",
    "TokenRejected",
    "IdentityService",
]
