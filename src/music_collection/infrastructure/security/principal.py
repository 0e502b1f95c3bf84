"""Principal resolution from bearer credentials."""

import logging
from typing import Optional

from ...domain.identity.repositories import UserRepository
from ...domain.identity.security import (
    Principal,
    TokenCodec,
    TokenExpired,
    TokenKind,
    TokenMalformed,
    TokenRejected,
)
from ...domain.result import AuthenticationError, AuthenticationFailure

logger = logging.getLogger(__name__)


class PrincipalResolver:
    """
    Turns an ``Authorization`` value into a ``Principal``.

    Accepts ``"Bearer <token>"`` or a bare token. Failures raise
    ``AuthenticationError`` whose ``kind`` tells a missing credential from
    a malformed, expired or otherwise invalid one.
    """

    def __init__(self, tokens: TokenCodec, users: UserRepository):
        self.tokens = tokens
        self.users = users

    @staticmethod
    def _extract(authorization: Optional[str]) -> str:
        if authorization is None or not authorization.strip():
            raise AuthenticationError(AuthenticationFailure.MISSING, "Not authorized, no token")
        parts = authorization.strip().split()
        if len(parts) == 1:
            return parts[0]
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
        raise AuthenticationError(AuthenticationFailure.MALFORMED, "Not authorized, malformed credentials")

    async def resolve(self, authorization: Optional[str]) -> Principal:
        token = self._extract(authorization)
        try:
            claims = self.tokens.verify(token, TokenKind.ACCESS)
        except TokenMalformed:
            raise AuthenticationError(AuthenticationFailure.MALFORMED, "Not authorized, malformed token")
        except TokenExpired:
            raise AuthenticationError(AuthenticationFailure.EXPIRED, "Not authorized, token expired")
        except TokenRejected:
            raise AuthenticationError(AuthenticationFailure.INVALID, "Not authorized, token failed")

        user = await self.users.find_by_id(claims.subject)
        if user is None:
            logger.warning("Access token for an unknown user")
            raise AuthenticationError(AuthenticationFailure.INVALID, "Not authorized, user not found")
        if claims.token_version != user.token_version:
            raise AuthenticationError(AuthenticationFailure.INVALID, "Not authorized, token revoked")
        return Principal(user_id=user.id)

    async def resolve_optional(self, authorization: Optional[str]) -> Optional[Principal]:
        """Like ``resolve`` but an absent credential yields an anonymous caller."""
        if authorization is None or not authorization.strip():
            return None
        return await self.resolve(authorization)
