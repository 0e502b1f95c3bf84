"""Repository implementations."""

from .memory import (
    InMemoryDocumentStore,
    InMemoryPlaylistRepository,
    InMemoryTrackRepository,
    InMemoryUserRepository,
)
from .snapshot import JsonSnapshotStore, document_to_record, record_to_document

__all__ = [
    "InMemoryDocumentStore",
    "InMemoryPlaylistRepository",
    "InMemoryTrackRepository",
    "InMemoryUserRepository",
    "JsonSnapshotStore",
    "document_to_record",
    "record_to_document",
]
