"""Result pattern and domain error taxonomy.

Services raise the typed errors below; the application boundary captures
outcomes as a ``Result`` so they can be rendered without relying on
exception flow. Error messages are safe to log and display: they never
contain passwords or tokens.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar('T')  # Success type
E = TypeVar('E', bound=Exception)  # Error type


class Result(ABC, Generic[T, E]):
    """Either a successful value or an error."""

    @abstractmethod
    def is_success(self) -> bool:
        ...

    @abstractmethod
    def is_failure(self) -> bool:
        ...

    @abstractmethod
    def value(self) -> T:
        """Get the success value.

        Raises:
            ValueError: If the result is a failure.
        """
        ...

    @abstractmethod
    def error(self) -> E:
        """Get the error.

        Raises:
            ValueError: If the result is a success.
        """
        ...

    def match(self, *, success: Callable[[T], Any] | None = None,
              failure: Callable[[E], Any] | None = None) -> Any:
        """Pattern match on the result."""
        if self.is_success() and success:
            return success(self.value())
        elif self.is_failure() and failure:
            return failure(self.error())
        return None


@dataclass(frozen=True, slots=True)
class Success(Result[T, E]):
    """Represents a successful operation with a value."""
    _value: T

    def __repr__(self) -> str:
        return f"Success({self._value!r})"

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def value(self) -> T:
        return self._value

    def error(self) -> E:
        raise ValueError("Cannot get error from Success result")


@dataclass(frozen=True, slots=True)
class Failure(Result[T, E]):
    """Represents a failed operation with an error."""
    _error: E

    def __repr__(self) -> str:
        return f"Failure({self._error!r})"

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def value(self) -> T:
        raise ValueError(f"Cannot get value from Failure result: {self._error}")

    def error(self) -> E:
        return self._error


def as_result_async(
    fn: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[Result[T, DomainError]]]:
    """Decorator turning an async function that raises ``DomainError`` into one returning a Result.

    Only domain errors are captured; anything else propagates so that
    programming errors are not silently folded into client-facing failures.

    Example:
        @as_result_async
        async def load(track_id: str) -> Track:
            return await catalog.get(track_id)

        result = await load("missing")  # Failure(NotFoundError(...))
    """
    @wraps(fn)
    async def wrapper(*args, **kwargs) -> Result[T, DomainError]:
        try:
            return Success(await fn(*args, **kwargs))
        except DomainError as e:
            return Failure(e)
    return wrapper


# Domain-specific errors
class DomainError(Exception):
    """Base class for domain-specific errors."""

    code = "domain_error"
    retryable = False

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(DomainError):
    """Raised when input is malformed or missing. Always client-fixable."""

    code = "validation_error"

    def __init__(self, message: str, *, field: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message, code=code)
        self.field = field


class BadRequestError(DomainError):
    """Raised when a well-formed request asks for something disallowed by the rules."""

    code = "bad_request"


class ConflictError(DomainError):
    """Raised when a uniqueness constraint would be violated."""

    code = "conflict"


class ConcurrentModificationError(ConflictError):
    """Raised when a compare-and-set update observed a stale value."""

    code = "concurrent_modification"


class InvalidCredentialsError(DomainError):
    """Raised for a failed login, whether the account exists or not."""

    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class InvalidTokenError(DomainError):
    """Raised when a presented token is not the one on record or cannot be verified."""

    code = "invalid_token"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class AuthenticationFailure(Enum):
    """Kinds of principal resolution failure."""
    MISSING = "missing"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    INVALID = "invalid"


class AuthenticationError(DomainError):
    """Raised when a bearer credential cannot be resolved to a principal."""

    code = "authentication_required"

    def __init__(self, kind: AuthenticationFailure, message: Optional[str] = None):
        super().__init__(message or f"Authentication failed: {kind.value} credentials")
        self.kind = kind


class ForbiddenError(DomainError):
    """Raised when an authenticated caller is not allowed to act on a resource."""

    code = "forbidden"


class NotFoundError(DomainError):
    """Raised when a resource is not found."""

    code = "not_found"


class NotAMemberError(NotFoundError):
    """Raised when a track exists but is not a member of the playlist."""

    code = "not_a_member"


class UnavailableError(DomainError):
    """Raised when a dependency timed out or is unreachable. Safe to retry with backoff."""

    code = "unavailable"
    retryable = True


class RateLimitedError(DomainError):
    """Raised when the caller exceeded the request quota."""

    code = "rate_limited"
    retryable = True
