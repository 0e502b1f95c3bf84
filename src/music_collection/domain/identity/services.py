"""Identity Context Domain Services.

Registration, credential checks and the refresh-token lifecycle. A user
has at most one active refresh token: its ``jti`` is recorded on the user
document and every rotation swaps it with a compare-and-set, so two
concurrent rotations of the same token cannot both succeed.
"""

import logging
from typing import Any, Mapping, Optional, Tuple

from ...events import EventBus, UserRegistered
from ..operations import CompareAndSet, SetFields
from ..result import (
    ConcurrentModificationError,
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from ..value_objects import EmailAddress, Username
from .entities import User, UserPreferences
from .repositories import UserRepository
from .security import (
    PasswordHasher,
    TokenCodec,
    TokenExpired,
    TokenKind,
    TokenMalformed,
    TokenPair,
    TokenRejected,
)

logger = logging.getLogger(__name__)


class IdentityService:
    """Service for accounts and credentials."""

    def __init__(
        self,
        user_repo: UserRepository,
        hasher: PasswordHasher,
        tokens: TokenCodec,
        event_bus: Optional[EventBus] = None,
        min_password_length: int = 8,
    ):
        self.user_repo = user_repo
        self.hasher = hasher
        self.tokens = tokens
        self.event_bus = event_bus
        self.min_password_length = min_password_length

    def _check_password(self, password: Any, field: str = "password") -> str:
        if not isinstance(password, str) or not password:
            raise ValidationError(f"{field} is required", field=field)
        if len(password) < self.min_password_length:
            raise ValidationError(
                f"{field} must be at least {self.min_password_length} characters long",
                field=field,
            )
        return password

    async def register(self, username: str, email: str, password: str) -> User:
        """Create an account.

        Raises:
            ValidationError: Malformed username, email or password.
            ConflictError: Username or email already registered.
        """
        name = Username(username)
        address = EmailAddress(email)
        password = self._check_password(password)

        if await self.user_repo.find_by_email(address.value) or \
                await self.user_repo.find_by_username(name.value):
            raise ConflictError("User with this email or username already exists")

        user = User(
            username=name.value,
            email=address.value,
            password_hash=self.hasher.hash(password),
        )
        # The repository enforces uniqueness too, closing the check-then-insert race
        await self.user_repo.add(user)
        logger.info(f"Registered user {user.id}")

        if self.event_bus:
            await self.event_bus.publish(
                UserRegistered(aggregate_id=user.id, user_id=user.id, username=user.username)
            )
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password; the two
                cases are indistinguishable.
        """
        try:
            address = EmailAddress(email)
        except ValidationError:
            self.hasher.dummy_verify()
            raise InvalidCredentialsError()
        user = await self.user_repo.find_by_email(address.value)
        if user is None or not isinstance(password, str):
            # Unknown accounts cost as much as a wrong password
            self.hasher.dummy_verify()
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, user.password_hash):
            raise InvalidCredentialsError()
        return user

    def issue_access_token(self, user: User) -> str:
        """Sign a short-lived access token."""
        return self.tokens.issue(user.id, TokenKind.ACCESS, user.token_version).token

    async def issue_refresh_token(self, user: User) -> str:
        """Sign a refresh token and make it the user's only active one."""
        issued = self.tokens.issue(user.id, TokenKind.REFRESH, user.token_version)
        updated = await self.user_repo.apply(
            user.id, SetFields({"refresh_token_id": issued.claims.token_id})
        )
        if updated is None:
            raise NotFoundError("User not found")
        return issued.token

    async def issue_tokens(self, user: User) -> TokenPair:
        """Issue a fresh access/refresh pair, replacing any active refresh token."""
        return TokenPair(
            access_token=self.issue_access_token(user),
            refresh_token=await self.issue_refresh_token(user),
            expires_in=self.tokens.ttl_seconds(TokenKind.ACCESS),
        )

    async def login(self, email: str, password: str) -> Tuple[User, TokenPair]:
        """Authenticate and hand out a fresh token pair."""
        user = await self.authenticate(email, password)
        return user, await self.issue_tokens(user)

    async def rotate_refresh_token(self, refresh_token: str) -> TokenPair:
        """Exchange the active refresh token for a new pair.

        Raises:
            InvalidTokenError: The token does not verify, has expired, or is
                not the one currently on record for its user.
        """
        if not isinstance(refresh_token, str) or not refresh_token:
            raise ValidationError("Refresh token is required", field="refreshToken")
        try:
            claims = self.tokens.verify(refresh_token, TokenKind.REFRESH)
        except (TokenMalformed, TokenExpired, TokenRejected):
            logger.warning("Rejected refresh token that failed verification")
            raise InvalidTokenError("Refresh token is invalid or has expired")

        user = await self.user_repo.find_by_id(claims.subject)
        if user is None or user.refresh_token_id != claims.token_id:
            logger.warning("Rejected refresh token that is not on record")
            raise InvalidTokenError("Invalid refresh token")

        issued = self.tokens.issue(user.id, TokenKind.REFRESH, user.token_version)
        try:
            user = await self.user_repo.apply(
                user.id,
                CompareAndSet("refresh_token_id", expected=claims.token_id, value=issued.claims.token_id),
            )
        except ConcurrentModificationError:
            raise InvalidTokenError("Invalid refresh token")
        if user is None:
            raise InvalidTokenError("Invalid refresh token")

        return TokenPair(
            access_token=self.issue_access_token(user),
            refresh_token=issued.token,
            expires_in=self.tokens.ttl_seconds(TokenKind.ACCESS),
        )

    async def revoke(self, user_id: str) -> None:
        """Log out: forget the active refresh token."""
        updated = await self.user_repo.apply(user_id, SetFields({"refresh_token_id": None}))
        if updated is None:
            raise NotFoundError("User not found")
        logger.debug(f"Revoked refresh token for user {user_id}")

    async def get_profile(self, user_id: str) -> User:
        """Load the account of an authenticated user."""
        user = await self.user_repo.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_profile(self, user_id: str, changes: Mapping[str, Any]) -> User:
        """Change username, email and/or preferences. Other keys are ignored.

        Raises:
            ConflictError: The new username or email belongs to someone else.
        """
        user = await self.get_profile(user_id)
        values: dict = {}

        if "username" in changes:
            name = Username(changes["username"])
            other = await self.user_repo.find_by_username(name.value)
            if other is not None and other.id != user.id:
                raise ConflictError("Username is already taken")
            values["username"] = name.value

        if "email" in changes:
            address = EmailAddress(changes["email"])
            other = await self.user_repo.find_by_email(address.value)
            if other is not None and other.id != user.id:
                raise ConflictError("Email is already registered")
            values["email"] = address.value

        if "preferences" in changes:
            if not isinstance(changes["preferences"], Mapping):
                raise ValidationError("preferences must be an object", field="preferences")
            values["preferences"] = user.preferences.merged(changes["preferences"])

        if not values:
            return user
        updated = await self.user_repo.apply(user.id, SetFields(values))
        if updated is None:
            raise NotFoundError("User not found")
        return updated

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> User:
        """Replace the password and invalidate every outstanding token.

        Raises:
            InvalidCredentialsError: ``current_password`` does not match.
        """
        user = await self.get_profile(user_id)
        if not isinstance(current_password, str) or \
                not self.hasher.verify(current_password, user.password_hash):
            raise InvalidCredentialsError()
        new_password = self._check_password(new_password, "newPassword")

        updated = await self.user_repo.apply(
            user.id,
            SetFields({
                "password_hash": self.hasher.hash(new_password),
                "refresh_token_id": None,
                "token_version": user.token_version + 1,
            }),
        )
        if updated is None:
            raise NotFoundError("User not found")
        logger.info(f"Password changed for user {user.id}; outstanding tokens invalidated")
        return updated


__all__ = ["IdentityService", "UserPreferences"]
