"""Collection Context Repository Interfaces."""

from ..repositories import DocumentRepository
from .entities import Playlist


class PlaylistRepository(DocumentRepository[Playlist]):
    """Repository for Playlist entities.

    Implementations must preserve the order of ``track_ids``.
    """
