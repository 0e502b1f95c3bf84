"""Shared fixtures: a fully wired service graph over in-memory repositories."""

from typing import Any, Dict

import pytest
import pytest_asyncio

from music_collection.application import CollectionAPI, build_container
from music_collection.models.config import ServiceConfig

PASSWORD = "correct-horse"


def track_attrs(**overrides: Any) -> Dict[str, Any]:
    """Valid track creation attributes."""
    attrs: Dict[str, Any] = {
        "title": "X",
        "artist": "Some Artist",
        "duration": 180,
        "file_url": "https://x/y.mp3",
        "is_public": True,
    }
    attrs.update(overrides)
    return attrs


@pytest.fixture
def config():
    """Default configuration with a fast password hash."""
    config = ServiceConfig.default()
    config.auth.password_scheme = "pbkdf2_sha256"
    return config


@pytest.fixture
def container(config):
    return build_container(config)


@pytest.fixture
def api(container):
    return CollectionAPI(container)


@pytest.fixture
def identity(container):
    return container.identity


@pytest.fixture
def catalog(container):
    return container.catalog


@pytest.fixture
def collection(container):
    return container.collection


@pytest_asyncio.fixture
async def alice(identity):
    return await identity.register("alice", "alice@example.com", PASSWORD)


@pytest_asyncio.fixture
async def bob(identity):
    return await identity.register("bob", "bob@example.com", PASSWORD)


@pytest_asyncio.fixture
async def carol(identity):
    return await identity.register("carol", "carol@example.com", PASSWORD)
