"""
Collection API - the application boundary.

Every operation takes the raw ``Authorization`` value and a payload,
resolves the principal, validates the payload against its schema, calls
the domain and renders the outcome as an ``Envelope``. Domain errors are
captured as ``Result`` failures; anything else is logged and becomes a
generic 500.
"""

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

from ..domain.identity.security import Principal
from ..domain.query import ListQuery, Page
from ..domain.result import DomainError, as_result_async
from .container import ServiceContainer
from .envelope import Envelope, error_envelope, success_envelope
from .schemas import to_snake_case, validate_payload

logger = logging.getLogger(__name__)

Params = Optional[Mapping[str, Any]]


def list_query(params: Params, default_limit: int) -> ListQuery:
    """Build a ListQuery from query-string style parameters in either case style."""
    normalized = {to_snake_case(key): value for key, value in (params or {}).items()}
    for key in ("sort_field", "sort_by"):
        if isinstance(normalized.get(key), str):
            normalized[key] = to_snake_case(normalized[key])
    return ListQuery.from_params(normalized, default_limit=default_limit)


class CollectionAPI:
    """Facade over the identity, catalog and collection services."""

    def __init__(self, container: ServiceContainer):
        self.container = container
        self.identity = container.identity
        self.catalog = container.catalog
        self.collection = container.collection
        self.principals = container.principals
        self.default_limit = container.config.listing.default_limit

    async def _respond(self, operation: Callable[[], Awaitable[Envelope]]) -> Envelope:
        try:
            result = await as_result_async(operation)()
        except Exception as e:
            logger.exception(f"Unhandled error in {getattr(operation, '__name__', 'operation')}")
            return error_envelope(e)
        return result.match(success=lambda envelope: envelope, failure=self._failed)

    @staticmethod
    def _failed(error: DomainError) -> Envelope:
        logger.debug(f"Request failed: {type(error).__name__}: {error.message}")
        return error_envelope(error)

    async def _principal(self, authorization: Optional[str]) -> Principal:
        return await self.principals.resolve(authorization)

    async def _viewer(self, authorization: Optional[str]) -> Optional[str]:
        principal = await self.principals.resolve_optional(authorization)
        return principal.user_id if principal else None

    @staticmethod
    def _page(page: Page, render: Callable[[Any], Any]) -> Envelope:
        return success_envelope([render(item) for item in page.items], pagination=page.info)

    # Health

    async def health(self) -> Envelope:
        async def op():
            return success_envelope({
                "status": "ok",
                "users": await self.container.users.count(),
                "tracks": await self.container.tracks.count(),
                "playlists": await self.container.playlists.count(),
            })
        return await self._respond(op)

    # Identity

    async def register(self, payload: Mapping[str, Any]) -> Envelope:
        async def op():
            data = validate_payload("register", payload)
            user = await self.identity.register(data["username"], data["email"], data["password"])
            tokens = await self.identity.issue_tokens(user)
            return success_envelope({"user": user.to_dict(), **tokens.to_dict()}, status_code=201)
        return await self._respond(op)

    async def login(self, payload: Mapping[str, Any]) -> Envelope:
        async def op():
            data = validate_payload("login", payload)
            user, tokens = await self.identity.login(data["email"], data["password"])
            return success_envelope({"user": user.to_dict(), **tokens.to_dict()})
        return await self._respond(op)

    async def refresh(self, payload: Mapping[str, Any]) -> Envelope:
        async def op():
            data = validate_payload("refresh", payload)
            tokens = await self.identity.rotate_refresh_token(data["refresh_token"])
            return success_envelope(tokens.to_dict())
        return await self._respond(op)

    async def logout(self, authorization: Optional[str]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            await self.identity.revoke(principal.user_id)
            return success_envelope({"message": "Logged out"})
        return await self._respond(op)

    async def me(self, authorization: Optional[str]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            return success_envelope((await self.identity.get_profile(principal.user_id)).to_dict())
        return await self._respond(op)

    async def update_me(self, authorization: Optional[str], payload: Mapping[str, Any]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            data = validate_payload("profile_update", payload)
            user = await self.identity.update_profile(principal.user_id, data)
            return success_envelope(user.to_dict())
        return await self._respond(op)

    async def change_password(self, authorization: Optional[str], payload: Mapping[str, Any]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            data = validate_payload("password_change", payload)
            await self.identity.change_password(
                principal.user_id, data["current_password"], data["new_password"]
            )
            return success_envelope({"message": "Password updated"})
        return await self._respond(op)

    # Tracks

    async def list_tracks(self, authorization: Optional[str], params: Params = None) -> Envelope:
        async def op():
            viewer_id = await self._viewer(authorization)
            page = await self.catalog.list(list_query(params, self.default_limit), viewer_id)
            return self._page(page, lambda track: track.to_dict())
        return await self._respond(op)

    async def get_track(self, authorization: Optional[str], track_id: str) -> Envelope:
        async def op():
            viewer_id = await self._viewer(authorization)
            return success_envelope((await self.catalog.get(track_id, viewer_id)).to_dict())
        return await self._respond(op)

    async def create_track(self, authorization: Optional[str], payload: Mapping[str, Any]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            data = validate_payload("track_create", payload)
            track = await self.catalog.create(principal.user_id, data)
            return success_envelope(track.to_dict(), status_code=201)
        return await self._respond(op)

    async def update_track(self, authorization: Optional[str], track_id: str, payload: Mapping[str, Any]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            data = validate_payload("track_update", payload)
            track = await self.catalog.update(track_id, principal.user_id, data)
            return success_envelope(track.to_dict())
        return await self._respond(op)

    async def delete_track(self, authorization: Optional[str], track_id: str) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            await self.catalog.delete(track_id, principal.user_id)
            return success_envelope({})
        return await self._respond(op)

    async def play_track(self, authorization: Optional[str], track_id: str) -> Envelope:
        async def op():
            viewer_id = await self._viewer(authorization)
            play_count = await self.catalog.increment_play(track_id, viewer_id)
            return success_envelope({"playCount": play_count})
        return await self._respond(op)

    async def track_stats(self, authorization: Optional[str], track_id: str) -> Envelope:
        async def op():
            viewer_id = await self._viewer(authorization)
            return success_envelope((await self.catalog.stats(track_id, viewer_id)).to_dict())
        return await self._respond(op)

    # Playlists

    async def list_playlists(self, authorization: Optional[str], params: Params = None) -> Envelope:
        async def op():
            viewer_id = await self._viewer(authorization)
            page = await self.collection.list(list_query(params, self.default_limit), viewer_id)
            return self._page(page, lambda playlist: playlist.to_dict(viewer_id))
        return await self._respond(op)

    async def get_playlist(self, authorization: Optional[str], playlist_id: str, params: Params = None) -> Envelope:
        """A playlist with one page of its resolved tracks."""
        async def op():
            viewer_id = await self._viewer(authorization)
            query = list_query(params, self.default_limit)
            playlist = await self.collection.get(playlist_id, viewer_id)
            tracks = await self.collection.get_tracks(playlist.id, viewer_id, query.page, query.limit)
            data = playlist.to_dict(viewer_id)
            data["tracks"] = [track.to_dict() for track in tracks.items]
            return success_envelope(data, pagination=tracks.info)
        return await self._respond(op)

    async def create_playlist(self, authorization: Optional[str], payload: Mapping[str, Any]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            data = validate_payload("playlist_create", payload)
            playlist = await self.collection.create(principal.user_id, data)
            return success_envelope(playlist.to_dict(principal.user_id), status_code=201)
        return await self._respond(op)

    async def update_playlist(self, authorization: Optional[str], playlist_id: str, payload: Mapping[str, Any]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            data = validate_payload("playlist_update", payload)
            playlist = await self.collection.update(playlist_id, principal.user_id, data)
            return success_envelope(playlist.to_dict(principal.user_id))
        return await self._respond(op)

    async def delete_playlist(self, authorization: Optional[str], playlist_id: str) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            await self.collection.delete(playlist_id, principal.user_id)
            return success_envelope({})
        return await self._respond(op)

    async def add_track(self, authorization: Optional[str], playlist_id: str, payload: Mapping[str, Any]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            data = validate_payload("add_track", payload)
            playlist = await self.collection.add_track(playlist_id, principal.user_id, data["track_id"])
            return success_envelope(playlist.to_dict(principal.user_id))
        return await self._respond(op)

    async def add_tracks_batch(self, authorization: Optional[str], playlist_id: str, payload: Mapping[str, Any]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            data = validate_payload("track_batch", payload)
            playlist = await self.collection.add_tracks_batch(playlist_id, principal.user_id, data["track_ids"])
            return success_envelope(playlist.to_dict(principal.user_id))
        return await self._respond(op)

    async def remove_track(self, authorization: Optional[str], playlist_id: str, track_id: str) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            playlist = await self.collection.remove_track(playlist_id, principal.user_id, track_id)
            return success_envelope(playlist.to_dict(principal.user_id))
        return await self._respond(op)

    async def reorder(self, authorization: Optional[str], playlist_id: str, payload: Mapping[str, Any]) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            data = validate_payload("reorder", payload)
            playlist = await self.collection.reorder(playlist_id, principal.user_id, data["track_ids"])
            return success_envelope(playlist.to_dict(principal.user_id))
        return await self._respond(op)

    async def toggle_follow(self, authorization: Optional[str], playlist_id: str) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            state = await self.collection.toggle_follow(playlist_id, principal.user_id)
            return success_envelope(state.to_dict())
        return await self._respond(op)

    async def duplicate_playlist(self, authorization: Optional[str], playlist_id: str, payload: Params = None) -> Envelope:
        async def op():
            principal = await self._principal(authorization)
            data = validate_payload("playlist_duplicate", payload)
            copy = await self.collection.duplicate(
                playlist_id, principal.user_id, is_public=data.get("is_public", False)
            )
            return success_envelope(copy.to_dict(principal.user_id), status_code=201)
        return await self._respond(op)

    async def playlist_stats(self, authorization: Optional[str], playlist_id: str) -> Envelope:
        async def op():
            viewer_id = await self._viewer(authorization)
            return success_envelope((await self.collection.stats(playlist_id, viewer_id)).to_dict())
        return await self._respond(op)
