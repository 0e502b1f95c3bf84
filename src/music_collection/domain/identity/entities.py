"""Identity Context Entities."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

from ..operations import utcnow
from ..result import ValidationError

THEMES = ("light", "dark")


@dataclass(frozen=True)
class UserPreferences:
    """Per-user display and notification preferences."""

    theme: str = "light"
    language: str = "en"
    notifications: bool = True

    def merged(self, changes: Mapping[str, Any]) -> "UserPreferences":
        """Return preferences with the recognised keys of ``changes`` applied."""
        values: Dict[str, Any] = {}
        if "theme" in changes:
            if changes["theme"] not in THEMES:
                raise ValidationError("theme must be one of: light, dark", field="theme")
            values["theme"] = changes["theme"]
        if "language" in changes:
            language = changes["language"]
            if not isinstance(language, str) or not language.strip():
                raise ValidationError("language must be a non-empty string", field="language")
            values["language"] = language.strip()
        if "notifications" in changes:
            if not isinstance(changes["notifications"], bool):
                raise ValidationError("notifications must be a boolean", field="notifications")
            values["notifications"] = changes["notifications"]
        return replace(self, **values)

    def to_dict(self) -> Dict[str, Any]:
        return {"theme": self.theme, "language": self.language, "notifications": self.notifications}


@dataclass(frozen=True, kw_only=True)
class User:
    """
    A registered account.

    ``password_hash`` and ``refresh_token_id`` are credentials: they are
    never part of ``to_dict`` and never appear in ``repr``.
    """

    id: str = field(default_factory=lambda: uuid4().hex)
    username: str
    email: str
    password_hash: str = field(repr=False)
    preferences: UserPreferences = field(default_factory=UserPreferences)

    # jti of the single active refresh token
    refresh_token_id: Optional[str] = field(default=None, repr=False)
    # bumped on password change; access tokens carry the version they were issued for
    token_version: int = 0

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Public representation of the user."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "preferences": self.preferences.to_dict(),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
