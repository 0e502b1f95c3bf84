"""
Domain value objects for the music collection.

Value objects are immutable and defined by their attributes. Each one
validates on construction and raises ``ValidationError`` with the name of
the offending field, so services can hand raw payload values straight in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple

from .result import ValidationError

URL_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://.+")
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")

MAX_TAG_LENGTH = 20
MAX_TAGS = 10


def bounded_text(
    value: Any,
    field: str,
    *,
    max_length: int,
    min_length: int = 0,
) -> str:
    """Trim a text value and enforce its length bounds."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    text = value.strip()
    if len(text) < min_length:
        if min_length == 1:
            raise ValidationError(f"{field} is required", field=field)
        raise ValidationError(f"{field} must be at least {min_length} characters", field=field)
    if len(text) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters", field=field)
    return text


def optional_text(value: Any, field: str, *, max_length: int) -> Optional[str]:
    """Like ``bounded_text`` but maps ``None`` and blank strings to ``None``."""
    if value is None:
        return None
    text = bounded_text(value, field, max_length=max_length)
    return text or None


def whole_seconds(value: Any, field: str = "duration") -> int:
    """Validate a non-negative whole number of seconds."""
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer", field=field)
        value = int(value)
    if value < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return value


def flag(value: Any, field: str) -> bool:
    """Validate a boolean flag."""
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be a boolean", field=field)
    return value


@dataclass(frozen=True, slots=True)
class MediaUrl:
    """A URL of the form ``scheme://...`` pointing at audio or artwork."""

    value: str

    def __init__(self, value: Any, field: str = "url") -> None:
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be a string", field=field)
        value = value.strip()
        if not URL_PATTERN.match(value):
            raise ValidationError(f"Invalid {field} format", field=field)
        object.__setattr__(self, 'value', value)

    @classmethod
    def optional(cls, value: Any, field: str) -> Optional[str]:
        """Validate an optional URL, returning the plain string or ``None``."""
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return cls(value, field).value

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class TagSet:
    """
    Normalized track tags.

    Tags are trimmed, empty entries are dropped and duplicates removed
    keeping the first occurrence. Two tag sets compare equal regardless of
    order.
    """

    tags: Tuple[str, ...]

    def __init__(self, tags: Optional[Iterable[Any]] = None) -> None:
        if tags is None:
            tags = ()
        if isinstance(tags, (str, bytes)) or not isinstance(tags, Iterable):
            raise ValidationError("tags must be an array", field="tags")

        seen = []
        for tag in tags:
            if not isinstance(tag, str):
                raise ValidationError("tags must contain strings", field="tags")
            tag = tag.strip()
            if not tag:
                continue
            if len(tag) > MAX_TAG_LENGTH:
                raise ValidationError(
                    f"Tag cannot exceed {MAX_TAG_LENGTH} characters", field="tags"
                )
            if tag not in seen:
                seen.append(tag)

        if len(seen) > MAX_TAGS:
            raise ValidationError(f"tags must not contain more than {MAX_TAGS} items", field="tags")
        object.__setattr__(self, 'tags', tuple(seen))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagSet):
            return NotImplemented
        return set(self.tags) == set(other.tags)

    def __hash__(self) -> int:
        return hash(frozenset(self.tags))

    def __iter__(self):
        return iter(self.tags)

    def __len__(self) -> int:
        return len(self.tags)

    def contains_all(self, required: Iterable[str]) -> bool:
        """Check that every required tag is present."""
        wanted = {tag.strip() for tag in required if isinstance(tag, str) and tag.strip()}
        return wanted <= set(self.tags)


@dataclass(frozen=True, slots=True)
class EmailAddress:
    """A trimmed, lower-cased email address."""

    value: str

    def __init__(self, value: Any) -> None:
        if not isinstance(value, str):
            raise ValidationError("email must be a string", field="email")
        value = value.strip().lower()
        if not EMAIL_PATTERN.match(value):
            raise ValidationError("Please provide a valid email address", field="email")
        object.__setattr__(self, 'value', value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Username:
    """A trimmed username between 3 and 30 characters."""

    value: str

    def __init__(self, value: Any) -> None:
        object.__setattr__(
            self, 'value', bounded_text(value, "username", min_length=3, max_length=30)
        )

    @property
    def key(self) -> str:
        """Case-folded form used for uniqueness checks."""
        return self.value.casefold()

    def __str__(self) -> str:
        return self.value


def format_duration(seconds: int) -> str:
    """Format a duration as ``m:ss``."""
    minutes, rest = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{rest:02d}"
