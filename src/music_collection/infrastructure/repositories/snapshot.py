"""
File-based snapshot persistence.

The in-memory repositories are the working set; this module loads them
from and saves them to one JSON file per collection under a data
directory. Used by the CLI, where every invocation is a fresh process.
"""

import json
import logging
import os
from dataclasses import fields
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Type, TypeVar

import aiofiles

from ...domain.catalog.entities import Track
from ...domain.collection.entities import Playlist
from ...domain.identity.entities import User, UserPreferences
from ...exceptions import StorageError
from .memory import InMemoryDocumentStore

logger = logging.getLogger(__name__)

E = TypeVar("E")

SNAPSHOT_VERSION = 1

_TIMESTAMPS = ("created_at", "updated_at")


def document_to_record(document: Any) -> Dict[str, Any]:
    """Convert an entity to a JSON-compatible dict, credentials included."""
    record: Dict[str, Any] = {}
    for f in fields(document):
        value = getattr(document, f.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, tuple):
            value = list(value)
        elif isinstance(value, UserPreferences):
            value = value.to_dict()
        record[f.name] = value
    return record


def record_to_document(record: Dict[str, Any], entity_type: Type[E]) -> E:
    """Rebuild an entity from a stored record. Unknown keys are ignored."""
    known = {f.name for f in fields(entity_type)}
    values: Dict[str, Any] = {}
    for name, value in record.items():
        if name not in known:
            continue
        if name in _TIMESTAMPS and isinstance(value, str):
            value = datetime.fromisoformat(value)
        elif isinstance(value, list):
            value = tuple(value)
        elif name == "preferences" and isinstance(value, dict):
            value = UserPreferences(**value)
        values[name] = value
    return entity_type(**values)


class JsonSnapshotStore:
    """Loads and saves in-memory repositories as JSON files."""

    COLLECTIONS = {
        "users": User,
        "tracks": Track,
        "playlists": Playlist,
    }

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _path(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    async def _read(self, name: str) -> List[Dict[str, Any]]:
        path = self._path(name)
        if not path.exists():
            return []
        try:
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                payload = json.loads(await f.read())
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("documents"), list):
            raise StorageError(f"Unrecognized snapshot format in {path}")
        return payload["documents"]

    async def _write(self, name: str, records: List[Dict[str, Any]]) -> None:
        path = self._path(name)
        tmp_path = path.with_suffix(".json.tmp")
        payload = {"version": SNAPSHOT_VERSION, "documents": records}
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(payload, indent=2))
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

    async def load(self, stores: Dict[str, InMemoryDocumentStore]) -> None:
        """Fill each named store from its snapshot file, if present."""
        for name, store in stores.items():
            entity_type = self.COLLECTIONS[name]
            try:
                documents = [record_to_document(r, entity_type) for r in await self._read(name)]
            except (TypeError, ValueError) as e:
                raise StorageError(f"Corrupt {name} snapshot: {e}") from e
            store.load(documents)
            logger.debug(f"Loaded {len(documents)} {name} from {self.data_dir}")

    async def save(self, stores: Dict[str, InMemoryDocumentStore]) -> None:
        """Write every named store to its snapshot file."""
        for name, store in stores.items():
            records = [document_to_record(doc) for doc in store.snapshot()]
            await self._write(name, records)
            logger.debug(f"Saved {len(records)} {name} to {self.data_dir}")
