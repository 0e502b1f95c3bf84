"""Catalog Context Repository Interfaces."""

from ..repositories import DocumentRepository
from .entities import Track


class TrackRepository(DocumentRepository[Track]):
    """Repository for Track entities."""
