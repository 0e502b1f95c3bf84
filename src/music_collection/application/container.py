"""Service graph wiring.

``build_container`` assembles repositories, adapters and services from a
``ServiceConfig``. With ``storage.data_dir`` set, ``open``/``save`` load
and persist JSON snapshots around a unit of work.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..domain.catalog.services import TrackCatalogService
from ..domain.collection.services import PlaylistService
from ..domain.identity.services import IdentityService
from ..events import EventBus
from ..infrastructure.repositories import (
    InMemoryDocumentStore,
    InMemoryPlaylistRepository,
    InMemoryTrackRepository,
    InMemoryUserRepository,
    JsonSnapshotStore,
)
from ..infrastructure.search import playlist_search, track_search
from ..infrastructure.security import JoseTokenCodec, PasslibPasswordHasher, PrincipalResolver
from ..models.config import ServiceConfig

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything a caller needs, built once per process."""
    config: ServiceConfig
    event_bus: EventBus
    users: InMemoryUserRepository
    tracks: InMemoryTrackRepository
    playlists: InMemoryPlaylistRepository
    identity: IdentityService
    catalog: TrackCatalogService
    collection: PlaylistService
    principals: PrincipalResolver
    snapshots: Optional[JsonSnapshotStore] = None
    _dirty: bool = field(default=False, repr=False)

    @property
    def stores(self) -> Dict[str, InMemoryDocumentStore]:
        return {"users": self.users, "tracks": self.tracks, "playlists": self.playlists}

    def _mark_dirty(self) -> None:
        self._dirty = True

    async def open(self) -> None:
        """Load snapshots, if persistence is configured."""
        if self.snapshots is not None:
            await self.snapshots.load(self.stores)
            self._dirty = False

    async def save(self) -> None:
        """Persist snapshots if anything changed since ``open``."""
        if self.snapshots is not None and self._dirty:
            await self.snapshots.save(self.stores)
            self._dirty = False


def build_container(config: Optional[ServiceConfig] = None, *, latency: float = 0.0) -> ServiceContainer:
    """Wire the service graph. ``latency`` simulates datastore round-trips."""
    config = config or ServiceConfig.default()
    config.validate()
    timeout = config.storage.timeout_seconds

    event_bus = EventBus()
    users = InMemoryUserRepository(timeout=timeout, latency=latency)
    tracks = InMemoryTrackRepository(timeout=timeout, latency=latency)
    playlists = InMemoryPlaylistRepository(timeout=timeout, latency=latency)

    hasher = PasslibPasswordHasher(config.auth.password_scheme, config.auth.bcrypt_rounds)
    tokens = JoseTokenCodec(
        access_secret=config.auth.access_secret,
        refresh_secret=config.auth.refresh_secret,
        algorithm=config.auth.algorithm,
        access_ttl_seconds=config.auth.access_ttl_seconds,
        refresh_ttl_seconds=config.auth.refresh_ttl_seconds,
    )

    identity = IdentityService(
        users, hasher, tokens, event_bus, min_password_length=config.auth.min_password_length
    )
    catalog = TrackCatalogService(tracks, track_search(), event_bus, max_limit=config.listing.max_limit)
    collection = PlaylistService(
        playlists, catalog, playlist_search(), event_bus, max_limit=config.listing.max_limit
    )
    catalog.attach_usage(collection)

    container = ServiceContainer(
        config=config,
        event_bus=event_bus,
        users=users,
        tracks=tracks,
        playlists=playlists,
        identity=identity,
        catalog=catalog,
        collection=collection,
        principals=PrincipalResolver(tokens, users),
        snapshots=JsonSnapshotStore(config.storage.data_dir) if config.storage.data_dir else None,
    )
    for store in container.stores.values():
        store.on_change(container._mark_dirty)

    logger.debug(f"Service container built (persistent={container.snapshots is not None})")
    return container
