"""Custom exceptions for music collection infrastructure.

Domain outcomes (not found, forbidden, ...) live in ``domain.result``;
these are failures of the process around the domain.
"""


class MusicCollectionError(Exception):
    """Base exception for music collection errors."""
    pass


class ConfigurationError(MusicCollectionError):
    """Raised when there's an error in configuration."""
    pass


class StorageError(MusicCollectionError):
    """Raised when a snapshot cannot be read or written."""
    pass
