"""Identity Context Repository Interfaces."""

from abc import ABC, abstractmethod
from typing import Optional

from ..operations import Operation
from .entities import User


class UserRepository(ABC):
    """Repository for User entities.

    Implementations enforce unique ``email`` and case-insensitive unique
    ``username`` and raise ``ConflictError`` on violation.
    """

    @abstractmethod
    async def add(self, user: User) -> None:
        """Insert a new user."""
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        """Find a user by ID."""
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        """Find a user by normalized email."""
        pass

    @abstractmethod
    async def find_by_username(self, username: str) -> Optional[User]:
        """Find a user by username, ignoring case."""
        pass

    @abstractmethod
    async def apply(self, user_id: str, operation: Operation) -> Optional[User]:
        """Atomically apply an operation; returns the updated user or None if absent."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Get total count of users."""
        pass
