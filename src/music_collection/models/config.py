"""Configuration model for the music collection service."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "MUSIC_COLLECTION_"

# Only for local use (tests, the CLI's default store); never for a deployment
INSECURE_ACCESS_SECRET = "insecure-access-secret-change-me"
INSECURE_REFRESH_SECRET = "insecure-refresh-secret-change-me"


@dataclass
class AuthConfig:
    """Configuration for password hashing and token signing."""
    access_secret: str = INSECURE_ACCESS_SECRET
    refresh_secret: str = INSECURE_REFRESH_SECRET
    algorithm: str = "HS256"
    access_ttl_seconds: int = 3600
    refresh_ttl_seconds: int = 7 * 24 * 3600
    password_scheme: str = "bcrypt"  # any passlib scheme, e.g. "pbkdf2_sha256"
    bcrypt_rounds: int = 12
    min_password_length: int = 8


@dataclass
class StorageConfig:
    """Configuration for the document store."""
    data_dir: Optional[Path] = None  # None keeps everything in memory
    timeout_seconds: float = 5.0


@dataclass
class ListingConfig:
    """Configuration for paginated listings."""
    default_limit: int = 10
    max_limit: int = 100


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class ServiceConfig:
    """Main configuration model."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    listing: ListingConfig = field(default_factory=ListingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> "ServiceConfig":
        """Create a default configuration (in-memory store, development secrets)."""
        return cls()

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        allow_insecure_defaults: bool = False,
    ) -> "ServiceConfig":
        """
        Build configuration from ``MUSIC_COLLECTION_*`` environment variables.

        ``MUSIC_COLLECTION_CONFIG`` may point at a JSON file that is loaded
        first; individual variables override it.

        Raises:
            ConfigurationError: A value does not parse, or a signing secret is
                missing and ``allow_insecure_defaults`` is not set.
        """
        env = os.environ if environ is None else environ

        config_path = env.get(f"{ENV_PREFIX}CONFIG")
        config = load_config(Path(config_path)) if config_path else cls()

        def _get(name: str) -> Optional[str]:
            value = env.get(f"{ENV_PREFIX}{name}")
            return value if value not in (None, "") else None

        def _int(name: str, current: int) -> int:
            raw = _get(name)
            if raw is None:
                return current
            try:
                return int(raw)
            except ValueError:
                raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")

        def _float(name: str, current: float) -> float:
            raw = _get(name)
            if raw is None:
                return current
            try:
                return float(raw)
            except ValueError:
                raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}")

        auth = config.auth
        auth.access_secret = _get("ACCESS_SECRET") or auth.access_secret
        auth.refresh_secret = _get("REFRESH_SECRET") or auth.refresh_secret
        auth.algorithm = _get("JWT_ALGORITHM") or auth.algorithm
        auth.access_ttl_seconds = _int("ACCESS_TTL", auth.access_ttl_seconds)
        auth.refresh_ttl_seconds = _int("REFRESH_TTL", auth.refresh_ttl_seconds)
        auth.password_scheme = _get("PASSWORD_SCHEME") or auth.password_scheme
        auth.bcrypt_rounds = _int("BCRYPT_ROUNDS", auth.bcrypt_rounds)

        data_dir = _get("DATA_DIR")
        if data_dir:
            config.storage.data_dir = Path(data_dir)
        config.storage.timeout_seconds = _float("STORAGE_TIMEOUT", config.storage.timeout_seconds)

        config.listing.default_limit = _int("DEFAULT_LIMIT", config.listing.default_limit)
        config.listing.max_limit = _int("MAX_LIMIT", config.listing.max_limit)
        config.logging.level = _get("LOG_LEVEL") or config.logging.level

        insecure = auth.access_secret == INSECURE_ACCESS_SECRET or \
            auth.refresh_secret == INSECURE_REFRESH_SECRET
        if insecure:
            if not allow_insecure_defaults:
                raise ConfigurationError(
                    f"{ENV_PREFIX}ACCESS_SECRET and {ENV_PREFIX}REFRESH_SECRET must be set"
                )
            logger.warning("Using built-in development token secrets")

        config.validate()
        return config

    def validate(self) -> None:
        """Check cross-field constraints.

        Raises:
            ConfigurationError: If the configuration is unusable.
        """
        if not self.auth.access_secret or not self.auth.refresh_secret:
            raise ConfigurationError("Token secrets must not be empty")
        if self.auth.access_secret == self.auth.refresh_secret:
            raise ConfigurationError("Access and refresh tokens must use different secrets")
        if self.auth.access_ttl_seconds <= 0 or self.auth.refresh_ttl_seconds <= 0:
            raise ConfigurationError("Token lifetimes must be positive")
        if self.storage.timeout_seconds <= 0:
            raise ConfigurationError("Storage timeout must be positive")
        if not 0 < self.listing.default_limit <= self.listing.max_limit:
            raise ConfigurationError("default_limit must be between 1 and max_limit")
        if self.auth.min_password_length < 1:
            raise ConfigurationError("min_password_length must be positive")


def _dataclass_to_dict(obj: Any) -> Any:
    """Convert dataclass to dict recursively."""
    from dataclasses import asdict, is_dataclass
    if is_dataclass(obj):
        return {key: _dataclass_to_dict(value) for key, value in asdict(obj).items()}
    elif isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, dict):
        return {key: _dataclass_to_dict(value) for key, value in obj.items()}
    return obj


def _dict_to_dataclass(data: Mapping[str, Any], dataclass_type):
    """Convert dict to dataclass recursively. Unknown keys are ignored."""
    from dataclasses import fields, is_dataclass
    if not is_dataclass(dataclass_type):
        return data
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Expected an object for {dataclass_type.__name__}")

    kwargs = {}
    for f in fields(dataclass_type):
        if f.name not in data:
            continue
        value = data[f.name]
        nested = _SECTIONS.get(f.name) if dataclass_type is ServiceConfig else None
        if nested is not None:
            kwargs[f.name] = _dict_to_dataclass(value, nested)
        elif f.name == "data_dir" and value is not None:
            kwargs[f.name] = Path(value)
        else:
            kwargs[f.name] = value

    return dataclass_type(**kwargs)


_SECTIONS = {
    "auth": AuthConfig,
    "storage": StorageConfig,
    "listing": ListingConfig,
    "logging": LoggingConfig,
}


def load_config(config_path: Path) -> ServiceConfig:
    """Load configuration from JSON file."""
    try:
        with open(config_path, 'r') as f:
            config_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read configuration {config_path}: {e}") from e

    return _dict_to_dataclass(config_data, ServiceConfig)


def save_config(config: ServiceConfig, config_path: Path) -> None:
    """Save configuration to JSON file."""
    with open(config_path, 'w') as f:
        json.dump(_dataclass_to_dict(config), f, indent=2)
