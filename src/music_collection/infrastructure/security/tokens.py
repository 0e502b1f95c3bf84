"""Signed tokens with python-jose.

Access and refresh tokens are HS256 JWTs signed with separate secrets.
Each carries a unique ``jti``, its kind in ``type`` and the user's token
version in ``ver``.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from jose import ExpiredSignatureError, JWTError, jwt

from ...domain.identity.security import (
    IssuedToken,
    TokenClaims,
    TokenCodec,
    TokenExpired,
    TokenKind,
    TokenMalformed,
    TokenRejected,
)


class JoseTokenCodec(TokenCodec):
    """TokenCodec producing JWTs."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl_seconds: int = 3600,
        refresh_ttl_seconds: int = 7 * 24 * 3600,
    ):
        self._secrets = {TokenKind.ACCESS: access_secret, TokenKind.REFRESH: refresh_secret}
        self._ttls = {TokenKind.ACCESS: access_ttl_seconds, TokenKind.REFRESH: refresh_ttl_seconds}
        self.algorithm = algorithm

    def ttl_seconds(self, kind: TokenKind) -> int:
        return self._ttls[kind]

    def issue(self, subject: str, kind: TokenKind, token_version: int = 0) -> IssuedToken:
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=self._ttls[kind])
        claims = TokenClaims(
            subject=subject,
            token_id=uuid4().hex,
            kind=kind,
            expires_at=expires_at,
            token_version=token_version,
        )
        to_encode = {
            "sub": subject,
            "jti": claims.token_id,
            "type": kind.value,
            "ver": token_version,
            "iat": int(now.timestamp()),
            "exp": expires_at,
        }
        token = jwt.encode(to_encode, self._secrets[kind], algorithm=self.algorithm)
        return IssuedToken(token=token, claims=claims)

    def verify(self, token: str, kind: TokenKind) -> TokenClaims:
        if not isinstance(token, str) or token.count(".") != 2:
            raise TokenMalformed("Token is not a JWT")
        try:
            jwt.get_unverified_header(token)
        except JWTError:
            raise TokenMalformed("Token header cannot be decoded")

        try:
            payload = jwt.decode(token, self._secrets[kind], algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise TokenExpired("Token has expired")
        except JWTError:
            raise TokenRejected("Token failed verification")

        if payload.get("type") != kind.value:
            raise TokenRejected(f"Expected a {kind.value} token")
        subject, token_id, version = payload.get("sub"), payload.get("jti"), payload.get("ver", 0)
        if not isinstance(subject, str) or not isinstance(token_id, str) or not isinstance(version, int):
            raise TokenRejected("Token claims are incomplete")

        return TokenClaims(
            subject=subject,
            token_id=token_id,
            kind=kind,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            token_version=version,
        )
