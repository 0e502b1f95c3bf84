"""Collection Context Entities.

A playlist embeds its ordered track ids and its followers. Membership has
no identity of its own: a track is in a playlist when its id is in
``track_ids``. All transitions are pure and return a ``Mutation``.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from ..operations import (
    AddToSet,
    CompareAndSet,
    Mutation,
    Pull,
    SetFields,
    ToggleMember,
    apply_operation,
    utcnow,
)
from ..result import BadRequestError, NotAMemberError, ValidationError
from ..value_objects import MediaUrl, bounded_text, flag, format_duration, optional_text

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
COPY_PREFIX = "Copy of "

UPDATABLE_FIELDS = ("name", "description", "cover_url", "is_public")


@dataclass(frozen=True, kw_only=True)
class Playlist:
    """An ordered, owned collection of track ids."""

    id: str = field(default_factory=lambda: uuid4().hex)
    name: str
    description: Optional[str] = None
    cover_url: Optional[str] = None
    track_ids: Tuple[str, ...] = ()
    owner_id: str
    is_public: bool = False
    follower_ids: Tuple[str, ...] = ()
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def track_count(self) -> int:
        return len(self.track_ids)

    @property
    def followers_count(self) -> int:
        return len(self.follower_ids)

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        return user_id is not None and self.owner_id == user_id

    def is_visible_to(self, viewer_id: Optional[str]) -> bool:
        """Privacy gates visibility only; recorded followers stay recorded."""
        return self.is_public or self.is_owned_by(viewer_id)

    def is_followed_by(self, user_id: Optional[str]) -> bool:
        return user_id is not None and user_id in self.follower_ids

    def to_dict(self, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "coverUrl": self.cover_url,
            "tracks": list(self.track_ids),
            "trackCount": self.track_count,
            "owner": self.owner_id,
            "isPublic": self.is_public,
            "followersCount": self.followers_count,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
        if viewer_id is not None:
            data["isFollowing"] = self.is_followed_by(viewer_id)
        return data


@dataclass(frozen=True)
class FollowState:
    """Outcome of a follow toggle."""
    is_following: bool
    followers_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"isFollowing": self.is_following, "followersCount": self.followers_count}


@dataclass(frozen=True)
class PlaylistStats:
    """Aggregate figures of a playlist."""
    track_count: int
    total_duration: int
    followers_count: int
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trackCount": self.track_count,
            "totalDuration": self.total_duration,
            "totalDurationFormatted": format_duration(self.total_duration),
            "followersCount": self.followers_count,
            "lastUpdated": self.updated_at.isoformat(),
        }


def _validate_field(name: str, value: Any) -> Any:
    if name == "name":
        return bounded_text(value, "name", min_length=1, max_length=NAME_MAX_LENGTH)
    if name == "description":
        return optional_text(value, "description", max_length=DESCRIPTION_MAX_LENGTH)
    if name == "cover_url":
        return MediaUrl.optional(value, "cover_url")
    if name == "is_public":
        return flag(value, "is_public")
    raise KeyError(name)


def _dedupe(track_ids: Iterable[str]) -> Tuple[str, ...]:
    ordered: list = []
    for track_id in track_ids:
        if track_id not in ordered:
            ordered.append(track_id)
    return tuple(ordered)


def build_playlist(owner_id: str, attrs: Mapping[str, Any], track_ids: Sequence[str] = ()) -> Playlist:
    """Validate creation attributes and build a new playlist.

    ``track_ids`` must already have been checked against the track
    directory; duplicates are dropped.
    """
    return Playlist(
        owner_id=owner_id,
        name=_validate_field("name", attrs.get("name")),
        description=_validate_field("description", attrs.get("description")),
        cover_url=_validate_field("cover_url", attrs.get("cover_url")),
        is_public=_validate_field("is_public", attrs.get("is_public", False)),
        track_ids=_dedupe(track_ids),
    )


def plan_update(playlist: Playlist, patch: Mapping[str, Any]) -> Mutation[Playlist]:
    """Plan an owner's metadata patch. Unknown fields are ignored."""
    values = {
        name: _validate_field(name, patch[name])
        for name in UPDATABLE_FIELDS
        if name in patch
    }
    if not values:
        return Mutation(playlist, None)
    operation = SetFields(values)
    return Mutation(apply_operation(playlist, operation), operation)


def plan_add_tracks(playlist: Playlist, track_ids: Sequence[str]) -> Mutation[Playlist]:
    """Plan an add-if-absent of one or more tracks.

    Ids already present, and repeats within ``track_ids``, are no-ops.
    """
    additions = tuple(t for t in _dedupe(track_ids) if t not in playlist.track_ids)
    if not additions:
        return Mutation(playlist, None)
    # The operation carries every requested id so the store re-checks
    # presence against the current document, not this snapshot
    operation = AddToSet("track_ids", _dedupe(track_ids))
    return Mutation(apply_operation(playlist, operation), operation)


def plan_remove_track(playlist: Playlist, track_id: str) -> Mutation[Playlist]:
    """Plan removal of a member.

    Raises:
        NotAMemberError: ``track_id`` is not in the playlist.
    """
    if track_id not in playlist.track_ids:
        raise NotAMemberError("Track is not in this playlist")
    operation = Pull("track_ids", track_id)
    return Mutation(apply_operation(playlist, operation), operation)


def plan_reorder(playlist: Playlist, new_order: Sequence[str]) -> Mutation[Playlist]:
    """Plan replacing the track order with a permutation of the current one.

    The operation is a compare-and-set against the observed order, so a
    membership change in between is detected instead of overwritten.

    Raises:
        ValidationError: ``new_order`` is not exactly a permutation.
    """
    if isinstance(new_order, (str, bytes)) or not isinstance(new_order, Sequence):
        raise ValidationError("trackIds must be an array", field="trackIds")
    new_order = tuple(new_order)
    foreign = [t for t in new_order if t not in playlist.track_ids]
    if foreign:
        raise ValidationError("Track order contains tracks that are not in the playlist", field="trackIds")
    if Counter(new_order) != Counter(playlist.track_ids):
        raise ValidationError("Track order must contain every playlist track exactly once", field="trackIds")
    if new_order == playlist.track_ids:
        return Mutation(playlist, None)
    operation = CompareAndSet("track_ids", expected=playlist.track_ids, value=new_order)
    return Mutation(apply_operation(playlist, operation), operation)


def plan_toggle_follow(playlist: Playlist, user_id: str) -> Mutation[Playlist]:
    """Plan a follow/unfollow by a non-owner.

    Raises:
        BadRequestError: ``user_id`` owns the playlist.
    """
    if playlist.is_owned_by(user_id):
        raise BadRequestError("Cannot follow your own playlist")
    # Follower changes are not edits of the playlist itself
    operation = ToggleMember("follower_ids", user_id, touch=False)
    return Mutation(apply_operation(playlist, operation), operation)


def plan_purge(track_id: str) -> Pull:
    """The operation removing a deleted track from any playlist."""
    return Pull("track_ids", track_id)


def plan_duplicate(
    source: Playlist,
    owner_id: str,
    track_ids: Sequence[str],
    is_public: bool = False,
) -> Playlist:
    """Build an independent copy of ``source`` owned by ``owner_id``.

    ``track_ids`` is the source order with dangling ids already removed.
    """
    name = (COPY_PREFIX + source.name)[:NAME_MAX_LENGTH]
    return Playlist(
        owner_id=owner_id,
        name=name,
        description=source.description,
        cover_url=source.cover_url,
        track_ids=_dedupe(track_ids),
        is_public=flag(is_public, "is_public"),
    )
