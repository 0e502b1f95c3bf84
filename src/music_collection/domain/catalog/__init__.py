"""
Catalog Context - Owned audio tracks.

This bounded context is responsible for:
- Validating and storing track documents
- Enforcing owner-only mutation and public/private visibility
- Counting plays atomically
- Answering track existence for the playlist engine
"""

from .entities import Track, TrackStats
from .repositories import TrackRepository
from .services import TrackCatalogService, TrackUsage

__all__ = [
    "Track",
    "TrackStats",
    "TrackRepository",
    "TrackCatalogService",
    "TrackUsage",
]
