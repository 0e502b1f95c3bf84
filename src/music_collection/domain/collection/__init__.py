"""
Collection Context - Playlists.

This bounded context is responsible for:
- Ordered, duplicate-free playlist membership
- Follow state of non-owners
- Purging deleted tracks from every playlist
"""

from .entities import FollowState, Playlist, PlaylistStats
from .repositories import PlaylistRepository
from .services import PlaylistService, TrackDirectory

__all__ = [
    "FollowState",
    "Playlist",
    "PlaylistStats",
    "PlaylistRepository",
    "PlaylistService",
    "TrackDirectory",
]
