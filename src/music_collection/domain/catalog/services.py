"""Catalog Context Domain Services.

The track catalog owns track documents and their visibility rules. It
also serves as the track directory the playlist engine consults before
accepting membership changes.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ...events import EventBus, EventPriority, TrackCreated, TrackDeleted, TrackPlayed
from ..query import (
    MAX_LIMIT,
    ListQuery,
    Page,
    SearchCapability,
    parse_bool,
    run_listing,
)
from ..result import ForbiddenError, NotFoundError
from .entities import Track, TrackStats, build_track, plan_play, plan_update
from .repositories import TrackRepository

logger = logging.getLogger(__name__)


def _matches_artist(track: Track, value: Any) -> bool:
    return str(value).strip().casefold() in track.artist.casefold()


def _matches_genre(track: Track, value: Any) -> bool:
    return track.genre is not None and track.genre.casefold() == str(value).strip().casefold()


TRACK_FILTERS = {
    "artist": _matches_artist,
    "genre": _matches_genre,
    "is_public": lambda track, value: track.is_public == parse_bool(value, "is_public"),
    "owner_id": lambda track, value: track.owner_id == value,
    "owner": lambda track, value: track.owner_id == value,
}

TRACK_SORT_KEYS = {
    "created_at": lambda track: track.created_at,
    "updated_at": lambda track: track.updated_at,
    "title": lambda track: track.title.casefold(),
    "artist": lambda track: track.artist.casefold(),
    "play_count": lambda track: track.play_count,
    "duration": lambda track: track.duration,
}


class TrackUsage(ABC):
    """Answers how many playlists reference a track."""

    @abstractmethod
    async def playlist_count(self, track_id: str) -> int:
        pass


class TrackCatalogService:
    """Service for track documents."""

    def __init__(
        self,
        track_repo: TrackRepository,
        search: SearchCapability[Track],
        event_bus: Optional[EventBus] = None,
        max_limit: int = MAX_LIMIT,
    ):
        self.track_repo = track_repo
        self.search = search
        self.event_bus = event_bus
        self.max_limit = max_limit
        self._usage: Optional[TrackUsage] = None

    def attach_usage(self, usage: TrackUsage) -> None:
        """Wire the playlist side in for ``stats``."""
        self._usage = usage

    async def _load(self, track_id: str) -> Track:
        track = await self.track_repo.find_by_id(track_id)
        if track is None:
            raise NotFoundError("Track not found")
        return track

    async def _load_owned(self, track_id: str, viewer_id: Optional[str]) -> Track:
        track = await self._load(track_id)
        if not track.is_owned_by(viewer_id):
            raise ForbiddenError("Not authorized to modify this track")
        return track

    async def create(self, owner_id: str, attrs: Mapping[str, Any]) -> Track:
        """Validate and store a new track owned by ``owner_id``."""
        track = build_track(owner_id, attrs)
        await self.track_repo.add(track)
        logger.debug(f"Created track {track.id} for owner {owner_id}")

        if self.event_bus:
            await self.event_bus.publish(TrackCreated(
                aggregate_id=track.id,
                track_id=track.id,
                owner_id=owner_id,
                title=track.title,
                artist=track.artist,
                is_public=track.is_public,
            ))
        return track

    async def get(self, track_id: str, viewer_id: Optional[str] = None) -> Track:
        """
        Load a track the viewer may see.

        Raises:
            NotFoundError: No such track.
            ForbiddenError: The track is private and the viewer is not its owner.
        """
        track = await self._load(track_id)
        if not track.is_visible_to(viewer_id):
            raise ForbiddenError("Not authorized to access this track")
        return track

    async def list(self, query: ListQuery, viewer_id: Optional[str] = None) -> Page[Track]:
        """List public tracks plus the viewer's own, narrowed by ``query``."""
        query = query.validated(self.max_limit)
        candidates = await self.track_repo.find_visible(viewer_id)
        return run_listing(
            candidates,
            query,
            search=self.search,
            tags_of=lambda track: track.tag_set,
            field_filters=TRACK_FILTERS,
            sort_keys=TRACK_SORT_KEYS,
        )

    async def update(self, track_id: str, viewer_id: Optional[str], patch: Mapping[str, Any]) -> Track:
        """Apply an owner's patch; unknown fields are ignored."""
        track = await self._load_owned(track_id, viewer_id)
        mutation = plan_update(track, patch)
        if mutation.is_noop:
            return track

        updated = await self.track_repo.apply(track.id, mutation.operation)
        if updated is None:
            raise NotFoundError("Track not found")
        logger.debug(f"Updated track {track.id}: {sorted(mutation.operation.values)}")
        return updated

    async def delete(self, track_id: str, viewer_id: Optional[str]) -> None:
        """
        Delete a track and purge it from every playlist.

        The purge runs synchronously through a critical ``TrackDeleted``
        event before this method returns.
        """
        track = await self._load_owned(track_id, viewer_id)
        if not await self.track_repo.delete(track.id):
            raise NotFoundError("Track not found")
        logger.info(f"Deleted track {track.id}")

        if self.event_bus:
            await self.event_bus.publish(
                TrackDeleted(aggregate_id=track.id, track_id=track.id, owner_id=track.owner_id),
                priority=EventPriority.CRITICAL,
            )

    async def increment_play(self, track_id: str, listener_id: Optional[str] = None) -> int:
        """Record a play. Anyone may do this, including anonymous callers."""
        track = await self._load(track_id)
        mutation = plan_play(track)
        updated = await self.track_repo.apply(track.id, mutation.operation)
        if updated is None:
            raise NotFoundError("Track not found")

        if self.event_bus:
            await self.event_bus.publish(TrackPlayed(
                aggregate_id=track.id,
                track_id=track.id,
                play_count=updated.play_count,
                listener_id=listener_id,
            ))
        return updated.play_count

    async def stats(self, track_id: str, viewer_id: Optional[str] = None) -> TrackStats:
        """Play count and number of playlists referencing the track."""
        track = await self.get(track_id, viewer_id)
        playlist_count = await self._usage.playlist_count(track.id) if self._usage else 0
        return TrackStats(play_count=track.play_count, playlist_count=playlist_count)

    # Track directory contract used by the playlist engine

    async def exists(self, track_id: str) -> bool:
        """Check whether a track exists, regardless of visibility."""
        if not isinstance(track_id, str) or not track_id:
            return False
        return await self.track_repo.find_by_id(track_id) is not None

    async def missing(self, track_ids: Iterable[str]) -> List[str]:
        """Return the ids that do not resolve to a track, first occurrence order."""
        wanted: List[str] = []
        for track_id in track_ids:
            if track_id not in wanted:
                wanted.append(track_id)
        valid = [t for t in wanted if isinstance(t, str) and t]
        found = {track.id for track in await self.track_repo.find_many(valid)}
        return [t for t in wanted if t not in found]

    async def resolve(self, track_ids: Iterable[str], viewer_id: Optional[str] = None) -> List[Track]:
        """
        Load tracks in the given order for display.

        Dangling ids are skipped, as are private tracks of other users.
        """
        track_ids = list(track_ids)
        tracks = await self.track_repo.find_many(track_ids)
        found: Dict[str, Track] = {track.id: track for track in tracks}
        dangling = [t for t in track_ids if t not in found]
        if dangling:
            logger.warning(f"Skipping {len(dangling)} dangling track reference(s)")
        return [track for track in tracks if track.is_visible_to(viewer_id)]
