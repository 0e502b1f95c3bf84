"""Collection Context Domain Services.

The playlist engine. It enforces unique ordered membership, follow state
and the cascade purge of deleted tracks. Track existence is always asked
of the track directory, never assumed from client input.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from ...events import (
    EventBus,
    PlaylistCreated,
    PlaylistDeleted,
    PlaylistFollowToggled,
    TrackDeleted,
)
from ..catalog.entities import Track
from ..catalog.services import TrackUsage
from ..query import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    ListQuery,
    Page,
    SearchCapability,
    SortOrder,
    paginate,
    parse_bool,
    parse_int,
    run_listing,
)
from ..result import AuthenticationError, AuthenticationFailure, ForbiddenError, NotFoundError, ValidationError
from .entities import (
    FollowState,
    Playlist,
    PlaylistStats,
    build_playlist,
    plan_add_tracks,
    plan_duplicate,
    plan_purge,
    plan_remove_track,
    plan_reorder,
    plan_toggle_follow,
    plan_update,
)
from .repositories import PlaylistRepository

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 500


class TrackDirectory(Protocol):
    """What the playlist engine needs to know about tracks."""

    async def exists(self, track_id: str) -> bool:
        ...

    async def missing(self, track_ids: Iterable[str]) -> List[str]:
        ...

    async def resolve(self, track_ids: Iterable[str], viewer_id: Optional[str] = None) -> List[Track]:
        ...


PLAYLIST_SORT_KEYS = {
    "created_at": lambda playlist: playlist.created_at,
    "updated_at": lambda playlist: playlist.updated_at,
    "name": lambda playlist: playlist.name.casefold(),
    "followers_count": lambda playlist: playlist.followers_count,
    "track_count": lambda playlist: playlist.track_count,
}

# Named orderings accepted as the ``sort`` parameter
PLAYLIST_SORT_PRESETS = {
    "newest": ("created_at", SortOrder.DESC),
    "oldest": ("created_at", SortOrder.ASC),
    "nameAsc": ("name", SortOrder.ASC),
    "nameDesc": ("name", SortOrder.DESC),
    "popular": ("followers_count", SortOrder.DESC),
}


def _playlist_filters(viewer_id: Optional[str]) -> Dict[str, Callable[[Playlist, Any], bool]]:
    def following(playlist: Playlist, value: Any) -> bool:
        return playlist.is_followed_by(viewer_id) == parse_bool(value, "following")

    return {
        "owner_id": lambda playlist, value: playlist.owner_id == value,
        "owner": lambda playlist, value: playlist.owner_id == value,
        "is_public": lambda playlist, value: playlist.is_public == parse_bool(value, "is_public"),
        "following": following,
        "has_track": lambda playlist, value: value in playlist.track_ids,
        "min_tracks": lambda playlist, value: playlist.track_count >= parse_int(value, "min_tracks"),
        "max_tracks": lambda playlist, value: playlist.track_count <= parse_int(value, "max_tracks"),
    }


def _require_viewer(viewer_id: Optional[str]) -> str:
    if viewer_id is None:
        raise AuthenticationError(AuthenticationFailure.MISSING)
    return viewer_id


def _track_id_list(track_ids: Any, field: str = "trackIds") -> List[str]:
    if isinstance(track_ids, (str, bytes)) or not isinstance(track_ids, Sequence):
        raise ValidationError(f"{field} must be an array", field=field)
    if any(not isinstance(t, str) or not t for t in track_ids):
        raise ValidationError(f"{field} must contain track ids", field=field)
    return list(track_ids)


class PlaylistService(TrackUsage):
    """Service for playlists and their membership."""

    def __init__(
        self,
        playlist_repo: PlaylistRepository,
        tracks: TrackDirectory,
        search: SearchCapability[Playlist],
        event_bus: Optional[EventBus] = None,
        max_limit: int = MAX_LIMIT,
    ):
        self.playlist_repo = playlist_repo
        self.tracks = tracks
        self.search = search
        self.event_bus = event_bus
        self.max_limit = max_limit

        if event_bus is not None:
            event_bus.subscribe(TrackDeleted, self.handle_track_deleted)

    async def _load(self, playlist_id: str) -> Playlist:
        playlist = await self.playlist_repo.find_by_id(playlist_id)
        if playlist is None:
            raise NotFoundError("Playlist not found")
        return playlist

    async def _load_owned(self, playlist_id: str, viewer_id: Optional[str]) -> Playlist:
        playlist = await self._load(playlist_id)
        if not playlist.is_owned_by(viewer_id):
            raise ForbiddenError("Not authorized to modify this playlist")
        return playlist

    async def _store(self, playlist: Playlist, mutation) -> Playlist:
        if mutation.is_noop:
            return playlist
        updated = await self.playlist_repo.apply(playlist.id, mutation.operation)
        if updated is None:
            raise NotFoundError("Playlist not found")
        return updated

    async def create(self, owner_id: str, attrs: Mapping[str, Any]) -> Playlist:
        """Create a playlist, optionally seeded with existing tracks."""
        owner_id = _require_viewer(owner_id)
        track_ids: List[str] = []
        if attrs.get("track_ids") is not None:
            track_ids = _track_id_list(attrs["track_ids"])
            missing = await self.tracks.missing(track_ids)
            if missing:
                raise ValidationError(f"Invalid track IDs: {', '.join(missing)}", field="trackIds")

        playlist = build_playlist(owner_id, attrs, track_ids)
        await self.playlist_repo.add(playlist)
        logger.debug(f"Created playlist {playlist.id} for owner {owner_id}")

        if self.event_bus:
            await self.event_bus.publish(PlaylistCreated(
                aggregate_id=playlist.id,
                playlist_id=playlist.id,
                owner_id=owner_id,
                name=playlist.name,
            ))
        return playlist

    async def get(self, playlist_id: str, viewer_id: Optional[str] = None) -> Playlist:
        """
        Load a playlist the viewer may see.

        Raises:
            NotFoundError: No such playlist.
            ForbiddenError: The playlist is private and the viewer is not its
                owner. Followers of a playlist made private get this too.
        """
        playlist = await self._load(playlist_id)
        if not playlist.is_visible_to(viewer_id):
            raise ForbiddenError("Not authorized to access this playlist")
        return playlist

    async def list(self, query: ListQuery, viewer_id: Optional[str] = None) -> Page[Playlist]:
        """List public playlists plus the viewer's own, narrowed by ``query``."""
        query = query.with_sort_preset(PLAYLIST_SORT_PRESETS).validated(self.max_limit)
        candidates = await self.playlist_repo.find_visible(viewer_id)
        return run_listing(
            candidates,
            query,
            search=self.search,
            tags_of=None,
            field_filters=_playlist_filters(viewer_id),
            sort_keys=PLAYLIST_SORT_KEYS,
        )

    async def update(self, playlist_id: str, viewer_id: Optional[str], patch: Mapping[str, Any]) -> Playlist:
        """Apply an owner's metadata patch; unknown fields are ignored."""
        playlist = await self._load_owned(playlist_id, viewer_id)
        return await self._store(playlist, plan_update(playlist, patch))

    async def delete(self, playlist_id: str, viewer_id: Optional[str]) -> None:
        """Delete a playlist. Followers are embedded, so nothing else refers to it."""
        playlist = await self._load_owned(playlist_id, viewer_id)
        if not await self.playlist_repo.delete(playlist.id):
            raise NotFoundError("Playlist not found")
        logger.info(f"Deleted playlist {playlist.id} ({playlist.followers_count} followers)")

        if self.event_bus:
            await self.event_bus.publish(PlaylistDeleted(
                aggregate_id=playlist.id,
                playlist_id=playlist.id,
                owner_id=playlist.owner_id,
                followers_count=playlist.followers_count,
            ))

    async def add_track(self, playlist_id: str, viewer_id: Optional[str], track_id: str) -> Playlist:
        """
        Append a track unless it is already a member.

        Raises:
            NotFoundError: The track does not exist.
        """
        if not isinstance(track_id, str) or not track_id:
            raise ValidationError("trackId is required", field="trackId")
        playlist = await self._load_owned(playlist_id, viewer_id)
        if not await self.tracks.exists(track_id):
            raise NotFoundError("Track not found")
        return await self._store(playlist, plan_add_tracks(playlist, [track_id]))

    async def add_tracks_batch(self, playlist_id: str, viewer_id: Optional[str], track_ids: Sequence[str]) -> Playlist:
        """
        Append several tracks in one atomic update.

        Every id is checked first; a single unknown id fails the whole batch
        with ``ValidationError`` and leaves the playlist untouched.
        """
        track_ids = _track_id_list(track_ids)
        if not track_ids:
            raise ValidationError("trackIds must not be empty", field="trackIds")
        if len(track_ids) > MAX_BATCH_SIZE:
            raise ValidationError(f"trackIds must not contain more than {MAX_BATCH_SIZE} items", field="trackIds")

        playlist = await self._load_owned(playlist_id, viewer_id)
        missing = await self.tracks.missing(track_ids)
        if missing:
            raise ValidationError(f"Invalid track IDs: {', '.join(missing)}", field="trackIds")
        return await self._store(playlist, plan_add_tracks(playlist, track_ids))

    async def remove_track(self, playlist_id: str, viewer_id: Optional[str], track_id: str) -> Playlist:
        """
        Remove a member.

        Raises:
            NotAMemberError: The track is not in this playlist.
        """
        playlist = await self._load_owned(playlist_id, viewer_id)
        return await self._store(playlist, plan_remove_track(playlist, track_id))

    async def reorder(self, playlist_id: str, viewer_id: Optional[str], new_order: Sequence[str]) -> Playlist:
        """
        Replace the track order with a permutation of the current members.

        Raises:
            ValidationError: ``new_order`` is not a permutation of the members.
            ConcurrentModificationError: Membership changed while reordering.
        """
        playlist = await self._load_owned(playlist_id, viewer_id)
        return await self._store(playlist, plan_reorder(playlist, new_order))

    async def toggle_follow(self, playlist_id: str, viewer_id: Optional[str]) -> FollowState:
        """
        Follow or unfollow a playlist.

        Raises:
            AuthenticationError: No viewer.
            ForbiddenError: The playlist is private to someone else.
            BadRequestError: The viewer owns the playlist.
        """
        viewer_id = _require_viewer(viewer_id)
        playlist = await self.get(playlist_id, viewer_id)
        mutation = plan_toggle_follow(playlist, viewer_id)
        updated = await self.playlist_repo.apply(playlist.id, mutation.operation)
        if updated is None:
            raise NotFoundError("Playlist not found")

        state = FollowState(
            is_following=updated.is_followed_by(viewer_id),
            followers_count=updated.followers_count,
        )
        if self.event_bus:
            await self.event_bus.publish(PlaylistFollowToggled(
                aggregate_id=playlist.id,
                playlist_id=playlist.id,
                user_id=viewer_id,
                is_following=state.is_following,
                followers_count=state.followers_count,
            ))
        return state

    async def purge_track(self, track_id: str) -> int:
        """Remove a deleted track from every playlist; returns how many changed."""
        purged = await self.playlist_repo.apply_all({"track_ids": track_id}, plan_purge(track_id))
        logger.info(f"Purged track {track_id} from {purged} playlist(s)")
        return purged

    async def handle_track_deleted(self, event: TrackDeleted) -> None:
        await self.purge_track(event.track_id)

    async def duplicate(self, playlist_id: str, viewer_id: Optional[str], is_public: bool = False) -> Playlist:
        """Copy a visible playlist into the viewer's collection."""
        viewer_id = _require_viewer(viewer_id)
        source = await self.get(playlist_id, viewer_id)
        missing = set(await self.tracks.missing(source.track_ids))
        copy = plan_duplicate(
            source,
            viewer_id,
            [t for t in source.track_ids if t not in missing],
            is_public=is_public,
        )
        await self.playlist_repo.add(copy)
        logger.debug(f"Duplicated playlist {source.id} as {copy.id}")

        if self.event_bus:
            await self.event_bus.publish(PlaylistCreated(
                aggregate_id=copy.id,
                playlist_id=copy.id,
                owner_id=viewer_id,
                name=copy.name,
                source_playlist_id=source.id,
            ))
        return copy

    async def get_tracks(
        self,
        playlist_id: str,
        viewer_id: Optional[str] = None,
        page: Any = 1,
        limit: Any = DEFAULT_LIMIT,
    ) -> Page[Track]:
        """Page through a playlist's tracks in playlist order.

        Dangling references and other users' private tracks are skipped.
        """
        query = ListQuery(page=page, limit=limit).validated(self.max_limit)
        playlist = await self.get(playlist_id, viewer_id)
        tracks = await self.tracks.resolve(playlist.track_ids, viewer_id)
        return paginate(tracks, query)

    async def stats(self, playlist_id: str, viewer_id: Optional[str] = None) -> PlaylistStats:
        playlist = await self.get(playlist_id, viewer_id)
        tracks = await self.tracks.resolve(playlist.track_ids, viewer_id)
        return PlaylistStats(
            track_count=len(tracks),
            total_duration=sum(track.duration for track in tracks),
            followers_count=playlist.followers_count,
            updated_at=playlist.updated_at,
        )

    async def playlist_count(self, track_id: str) -> int:
        return await self.playlist_repo.count({"track_ids": track_id})
