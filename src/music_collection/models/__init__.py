"""Configuration models."""

from .config import (
    AuthConfig,
    ListingConfig,
    LoggingConfig,
    ServiceConfig,
    StorageConfig,
    load_config,
    save_config,
)

__all__ = [
    "AuthConfig",
    "ListingConfig",
    "LoggingConfig",
    "ServiceConfig",
    "StorageConfig",
    "load_config",
    "save_config",
]
