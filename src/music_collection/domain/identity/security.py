"""Identity Context security ports.

The identity service owns hashing and token issuance but not the
algorithms: these interfaces are implemented in
``infrastructure.security`` with passlib and python-jose.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TokenKind(Enum):
    """The two independent token families."""
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Verified contents of a token."""

    subject: str
    token_id: str
    kind: TokenKind
    expires_at: datetime
    token_version: int = 0


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """A freshly signed token and its claims."""

    token: str
    claims: TokenClaims


@dataclass(frozen=True, slots=True)
class TokenPair:
    """Access and refresh tokens handed out together."""

    access_token: str
    refresh_token: str
    expires_in: int

    def to_dict(self) -> dict:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresIn": self.expires_in,
        }


class TokenExpired(Exception):
    """The token signature is valid but it has expired."""


class TokenMalformed(Exception):
    """The token is not structurally a token."""


class TokenRejected(Exception):
    """The token failed verification (signature, claims or kind)."""


class PasswordHasher(ABC):
    """One-way password hashing."""

    @abstractmethod
    def hash(self, password: str) -> str:
        """Hash a plaintext password."""
        pass

    @abstractmethod
    def verify(self, password: str, password_hash: str) -> bool:
        """Check a plaintext password against a stored hash."""
        pass

    @abstractmethod
    def dummy_verify(self) -> None:
        """Spend the time of one verification without a stored hash."""
        pass


class TokenCodec(ABC):
    """Signs and verifies time-bounded tokens."""

    @abstractmethod
    def issue(self, subject: str, kind: TokenKind, token_version: int = 0) -> IssuedToken:
        """Sign a new token for ``subject``."""
        pass

    @abstractmethod
    def verify(self, token: str, kind: TokenKind) -> TokenClaims:
        """Verify a token of the given kind.

        Raises:
            TokenMalformed: The token is not a well-formed token.
            TokenExpired: The token has expired.
            TokenRejected: Signature, claims or kind do not check out.
        """
        pass

    @abstractmethod
    def ttl_seconds(self, kind: TokenKind) -> int:
        """Lifetime of tokens of the given kind."""
        pass


@dataclass(frozen=True, slots=True)
class Principal:
    """The authenticated caller of an operation."""

    user_id: str
