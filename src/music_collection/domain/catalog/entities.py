"""Catalog Context Entities.

Tracks are immutable snapshots. Every change is planned by a pure
function returning the next state together with the atomic operation the
repository has to perform.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple
from uuid import uuid4

from ..operations import Increment, Mutation, SetFields, apply_operation, utcnow
from ..value_objects import (
    MediaUrl,
    TagSet,
    bounded_text,
    flag,
    format_duration,
    optional_text,
    whole_seconds,
)

TITLE_MAX_LENGTH = 100
ARTIST_MAX_LENGTH = 100
GENRE_MAX_LENGTH = 50

# Fields an owner may patch; anything else in a patch is ignored
UPDATABLE_FIELDS = ("title", "artist", "duration", "file_url", "cover_url", "genre", "tags", "is_public")


@dataclass(frozen=True, kw_only=True)
class Track:
    """An audio track owned by a user."""

    id: str = field(default_factory=lambda: uuid4().hex)
    title: str
    artist: str
    duration: int
    file_url: str
    cover_url: Optional[str] = None
    genre: Optional[str] = None
    tags: Tuple[str, ...] = ()
    play_count: int = 0
    is_public: bool = False
    owner_id: str
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def tag_set(self) -> TagSet:
        return TagSet(self.tags)

    @property
    def duration_formatted(self) -> str:
        return format_duration(self.duration)

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        return user_id is not None and self.owner_id == user_id

    def is_visible_to(self, viewer_id: Optional[str]) -> bool:
        """Public tracks are visible to everyone, private ones only to the owner."""
        return self.is_public or self.is_owned_by(viewer_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "duration": self.duration,
            "durationFormatted": self.duration_formatted,
            "fileUrl": self.file_url,
            "coverUrl": self.cover_url,
            "genre": self.genre,
            "tags": list(self.tags),
            "playCount": self.play_count,
            "isPublic": self.is_public,
            "owner": self.owner_id,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class TrackStats:
    """Usage figures of a track."""
    play_count: int
    playlist_count: int

    def to_dict(self) -> Dict[str, int]:
        return {"playCount": self.play_count, "playlistCount": self.playlist_count}


def _validate_field(name: str, value: Any) -> Any:
    if name == "title":
        return bounded_text(value, "title", min_length=1, max_length=TITLE_MAX_LENGTH)
    if name == "artist":
        return bounded_text(value, "artist", min_length=1, max_length=ARTIST_MAX_LENGTH)
    if name == "duration":
        return whole_seconds(value, "duration")
    if name == "file_url":
        return MediaUrl(value, "file_url").value
    if name == "cover_url":
        return MediaUrl.optional(value, "cover_url")
    if name == "genre":
        return optional_text(value, "genre", max_length=GENRE_MAX_LENGTH)
    if name == "tags":
        return TagSet(value).tags
    if name == "is_public":
        return flag(value, "is_public")
    raise KeyError(name)


def build_track(owner_id: str, attrs: Mapping[str, Any]) -> Track:
    """Validate creation attributes and build a new track.

    ``owner_id`` always comes from the caller's principal; an owner in
    ``attrs`` is ignored, as are ``play_count`` and any unknown key.

    Raises:
        ValidationError: On a missing or malformed attribute.
    """
    values: Dict[str, Any] = {
        name: _validate_field(name, attrs.get(name))
        for name in ("title", "artist", "duration", "file_url")
    }
    for name in ("cover_url", "genre"):
        values[name] = _validate_field(name, attrs.get(name))
    values["tags"] = _validate_field("tags", attrs.get("tags"))
    values["is_public"] = _validate_field("is_public", attrs.get("is_public", False))
    return Track(owner_id=owner_id, **values)


def plan_update(track: Track, patch: Mapping[str, Any]) -> Mutation[Track]:
    """Plan an owner's field patch. Unknown fields are ignored."""
    values = {
        name: _validate_field(name, patch[name])
        for name in UPDATABLE_FIELDS
        if name in patch
    }
    if not values:
        return Mutation(track, None)
    operation = SetFields(values)
    return Mutation(apply_operation(track, operation), operation)


def plan_play(track: Track) -> Mutation[Track]:
    """Plan a play: an atomic increment of ``play_count``.

    Plays do not count as edits, so ``updated_at`` is left alone.
    """
    operation = Increment("play_count", 1, touch=False)
    return Mutation(apply_operation(track, operation), operation)
