"""Password hashing with passlib."""

import logging

from passlib.context import CryptContext

from ...domain.identity.security import PasswordHasher

logger = logging.getLogger(__name__)


class PasslibPasswordHasher(PasswordHasher):
    """PasswordHasher backed by a passlib ``CryptContext``.

    ``scheme`` is any passlib scheme name; production uses ``bcrypt``.
    """

    def __init__(self, scheme: str = "bcrypt", bcrypt_rounds: int = 12):
        settings = {"bcrypt__rounds": bcrypt_rounds} if scheme == "bcrypt" else {}
        self.context = CryptContext(schemes=[scheme], deprecated="auto", **settings)

    def hash(self, password: str) -> str:
        return self.context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        if not password_hash:
            return False
        try:
            return self.context.verify(password, password_hash)
        except ValueError:
            # Stored hash uses a scheme this context does not know
            logger.warning("Password hash in an unrecognized format")
            return False

    def dummy_verify(self) -> None:
        self.context.dummy_verify()
