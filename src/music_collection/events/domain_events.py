"""
Domain Events - Specific event implementations.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .event_bus import DomainEvent


@dataclass(kw_only=True)
class UserRegistered(DomainEvent):
    """Event fired when an account is created."""
    user_id: str
    username: str

    def _get_event_data(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "username": self.username}


@dataclass(kw_only=True)
class TrackCreated(DomainEvent):
    """Event fired when a track is added to the catalog."""
    track_id: str
    owner_id: str
    title: str
    artist: str
    is_public: bool = False

    def _get_event_data(self) -> Dict[str, Any]:
        return {
            "track_id": self.track_id,
            "owner_id": self.owner_id,
            "title": self.title,
            "artist": self.artist,
            "is_public": self.is_public,
        }


@dataclass(kw_only=True)
class TrackDeleted(DomainEvent):
    """Event fired after a track document is removed.

    Playlists still referencing ``track_id`` must drop it.
    """
    track_id: str
    owner_id: str

    def _get_event_data(self) -> Dict[str, Any]:
        return {"track_id": self.track_id, "owner_id": self.owner_id}


@dataclass(kw_only=True)
class TrackPlayed(DomainEvent):
    """Event fired when a play is recorded."""
    track_id: str
    play_count: int
    listener_id: Optional[str] = None

    def _get_event_data(self) -> Dict[str, Any]:
        return {
            "track_id": self.track_id,
            "play_count": self.play_count,
            "listener_id": self.listener_id,
        }


@dataclass(kw_only=True)
class PlaylistCreated(DomainEvent):
    """Event fired when a playlist is created (including duplicates)."""
    playlist_id: str
    owner_id: str
    name: str
    source_playlist_id: Optional[str] = None

    def _get_event_data(self) -> Dict[str, Any]:
        return {
            "playlist_id": self.playlist_id,
            "owner_id": self.owner_id,
            "name": self.name,
            "source_playlist_id": self.source_playlist_id,
        }


@dataclass(kw_only=True)
class PlaylistDeleted(DomainEvent):
    """Event fired when a playlist is deleted."""
    playlist_id: str
    owner_id: str
    followers_count: int = 0

    def _get_event_data(self) -> Dict[str, Any]:
        return {
            "playlist_id": self.playlist_id,
            "owner_id": self.owner_id,
            "followers_count": self.followers_count,
        }


@dataclass(kw_only=True)
class PlaylistFollowToggled(DomainEvent):
    """Event fired when a user follows or unfollows a playlist."""
    playlist_id: str
    user_id: str
    is_following: bool
    followers_count: int

    def _get_event_data(self) -> Dict[str, Any]:
        return {
            "playlist_id": self.playlist_id,
            "user_id": self.user_id,
            "is_following": self.is_following,
            "followers_count": self.followers_count,
        }
