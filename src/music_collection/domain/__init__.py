"""
Domain Layer - Music Collection

This module contains the domain layer with bounded contexts following Domain-Driven Design principles.

Bounded Contexts:
- Identity: Accounts, credentials and token lifecycle
- Catalog: Track documents, visibility and play counts
- Collection: Playlists, membership, follow state and cascade purge
"""

from .result import (
    Result,
    Success,
    Failure,
    as_result_async,
    DomainError,
    ValidationError,
    BadRequestError,
    ConflictError,
    ConcurrentModificationError,
    InvalidCredentialsError,
    InvalidTokenError,
    AuthenticationFailure,
    AuthenticationError,
    ForbiddenError,
    NotFoundError,
    NotAMemberError,
    UnavailableError,
    RateLimitedError,
)
from .query import ListQuery, Page, PageInfo, SortOrder, SearchCapability

# Bounded Contexts
from .identity import User, UserPreferences, UserRepository, IdentityService
from .catalog import Track, TrackStats, TrackRepository, TrackCatalogService
from .collection import Playlist, FollowState, PlaylistStats, PlaylistRepository, PlaylistService

__all__ = [
    # Result pattern
    "Result",
    "Success",
    "Failure",
    "as_result_async",
    # Errors
    "DomainError",
    "ValidationError",
    "BadRequestError",
    "ConflictError",
    "ConcurrentModificationError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "AuthenticationFailure",
    "AuthenticationError",
    "ForbiddenError",
    "NotFoundError",
    "NotAMemberError",
    "UnavailableError",
    "RateLimitedError",
    # Listing
    "ListQuery",
    "Page",
    "PageInfo",
    "SortOrder",
    "SearchCapability",
    # Identity
    "User",
    "UserPreferences",
    "UserRepository",
    "IdentityService",
    # Catalog
    "Track",
    "TrackStats",
    "TrackRepository",
    "TrackCatalogService",
    # Collection
    "Playlist",
    "FollowState",
    "PlaylistStats",
    "PlaylistRepository",
    "PlaylistService",
]
