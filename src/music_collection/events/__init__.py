"""
Event System - Domain Events Architecture

This package implements the event-driven seam between the track catalog
and the playlist engine.
"""

from .event_bus import EventBus, DomainEvent, EventHandler, EventPriority
from .domain_events import (
    UserRegistered,
    TrackCreated,
    TrackDeleted,
    TrackPlayed,
    PlaylistCreated,
    PlaylistDeleted,
    PlaylistFollowToggled,
)

__all__ = [
    # Core event system
    "EventBus",
    "DomainEvent",
    "EventHandler",
    "EventPriority",
    # Domain events
    "UserRegistered",
    "TrackCreated",
    "TrackDeleted",
    "TrackPlayed",
    "PlaylistCreated",
    "PlaylistDeleted",
    "PlaylistFollowToggled",
]
