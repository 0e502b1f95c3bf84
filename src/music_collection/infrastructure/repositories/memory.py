"""
In-memory Repository Implementations.

Documents are kept in insertion order. Every mutation of a single
document runs under that document's ``asyncio.Lock``, which gives the
same per-document atomicity a document database gives for ``$inc`` or
``$addToSet``. Every call is bounded by a timeout; a timeout surfaces as
``UnavailableError``.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from ...domain.catalog.entities import Track
from ...domain.catalog.repositories import TrackRepository
from ...domain.collection.entities import Playlist
from ...domain.collection.repositories import PlaylistRepository
from ...domain.identity.entities import User
from ...domain.identity.repositories import UserRepository
from ...domain.operations import Operation, SetFields, apply_operation
from ...domain.repositories import Criteria
from ...domain.result import ConflictError, UnavailableError

logger = logging.getLogger(__name__)

D = TypeVar("D")
R = TypeVar("R")


def matches(document: Any, criteria: Optional[Criteria]) -> bool:
    """Equality match; on a sequence field the value must be contained."""
    if not criteria:
        return True
    for name, expected in criteria.items():
        actual = getattr(document, name, None)
        if isinstance(actual, tuple):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


class InMemoryDocumentStore(Generic[D]):
    """Document storage shared by the in-memory repositories."""

    def __init__(self, timeout: float = 5.0, latency: float = 0.0):
        self._documents: Dict[str, D] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._listeners: List[Callable[[], None]] = []
        self.timeout = timeout
        # Simulated round-trip, applied inside the document lock
        self.latency = latency

    def on_change(self, listener: Callable[[], None]) -> None:
        """Register a callback run after every successful write."""
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    def _lock_for(self, document_id: str) -> asyncio.Lock:
        lock = self._locks.get(document_id)
        if lock is None:
            lock = self._locks[document_id] = asyncio.Lock()
        return lock

    async def _bounded(self, call: Callable[[], Awaitable[R]]) -> R:
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{type(self).__name__} call exceeded {self.timeout}s")
            raise UnavailableError("Datastore did not respond in time")

    async def _round_trip(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    def load(self, documents: Iterable[D]) -> None:
        """Replace the contents, e.g. from a snapshot. Does not notify listeners."""
        self._documents = {doc.id: doc for doc in documents}
        self._locks.clear()

    def snapshot(self) -> List[D]:
        return list(self._documents.values())

    async def add(self, document: D) -> None:
        async def _add():
            await self._round_trip()
            if document.id in self._documents:
                raise ConflictError("Document already exists")
            self._documents[document.id] = document
        await self._bounded(_add)
        self._changed()

    async def find_by_id(self, document_id: str) -> Optional[D]:
        async def _find():
            await self._round_trip()
            return self._documents.get(document_id)
        return await self._bounded(_find)

    async def find_many(self, document_ids: Iterable[str]) -> List[D]:
        document_ids = list(document_ids)

        async def _find():
            await self._round_trip()
            return [self._documents[i] for i in document_ids if i in self._documents]
        return await self._bounded(_find)

    async def find(self, criteria: Optional[Criteria] = None) -> List[D]:
        async def _find():
            await self._round_trip()
            return [doc for doc in self._documents.values() if matches(doc, criteria)]
        return await self._bounded(_find)

    async def find_visible(self, viewer_id: Optional[str], criteria: Optional[Criteria] = None) -> List[D]:
        async def _find():
            await self._round_trip()
            return [
                doc for doc in self._documents.values()
                if (doc.is_public or (viewer_id is not None and doc.owner_id == viewer_id))
                and matches(doc, criteria)
            ]
        return await self._bounded(_find)

    async def apply(self, document_id: str, operation: Operation) -> Optional[D]:
        async def _apply():
            async with self._lock_for(document_id):
                current = self._documents.get(document_id)
                if current is None:
                    return None
                self._check(current, operation)
                updated = apply_operation(current, operation)
                await self._round_trip()
                # Deleted while we waited
                if document_id not in self._documents:
                    return None
                self._documents[document_id] = updated
                return updated

        updated = await self._bounded(_apply)
        if updated is not None:
            self._changed()
        return updated

    def _check(self, current: D, operation: Operation) -> None:
        """Hook for store-level constraints on updates."""

    async def apply_all(self, criteria: Criteria, operation: Operation) -> int:
        matching = [doc.id for doc in await self.find(criteria)]
        updated = 0
        for document_id in matching:
            if await self.apply(document_id, operation) is not None:
                updated += 1
        return updated

    async def delete(self, document_id: str) -> bool:
        async def _delete():
            async with self._lock_for(document_id):
                await self._round_trip()
                return self._documents.pop(document_id, None) is not None

        deleted = await self._bounded(_delete)
        if deleted:
            self._locks.pop(document_id, None)
            self._changed()
        return deleted

    async def count(self, criteria: Optional[Criteria] = None) -> int:
        return len(await self.find(criteria))


class InMemoryTrackRepository(InMemoryDocumentStore[Track], TrackRepository):
    """In-memory implementation of TrackRepository."""


class InMemoryPlaylistRepository(InMemoryDocumentStore[Playlist], PlaylistRepository):
    """In-memory implementation of PlaylistRepository."""


class InMemoryUserRepository(InMemoryDocumentStore[User], UserRepository):
    """In-memory implementation of UserRepository with unique email and username."""

    def __init__(self, timeout: float = 5.0, latency: float = 0.0):
        super().__init__(timeout=timeout, latency=latency)
        # Serializes inserts and identity changes across documents
        self._unique_lock = asyncio.Lock()

    def _taken(self, email: Optional[str], username: Optional[str], exclude_id: Optional[str] = None) -> bool:
        key = username.casefold() if username else None
        for user in self._documents.values():
            if user.id == exclude_id:
                continue
            if email and user.email == email:
                return True
            if key and user.username.casefold() == key:
                return True
        return False

    async def add(self, user: User) -> None:
        async with self._unique_lock:
            if self._taken(user.email, user.username):
                raise ConflictError("User with this email or username already exists")
            await super().add(user)

    async def apply(self, user_id: str, operation: Operation) -> Optional[User]:
        if isinstance(operation, SetFields) and ({"email", "username"} & set(operation.values)):
            async with self._unique_lock:
                return await super().apply(user_id, operation)
        return await super().apply(user_id, operation)

    def _check(self, current: User, operation: Operation) -> None:
        if isinstance(operation, SetFields):
            if self._taken(operation.values.get("email"), operation.values.get("username"), exclude_id=current.id):
                raise ConflictError("User with this email or username already exists")

    async def find_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        return next(iter(await self.find({"email": email})), None)

    async def find_by_username(self, username: str) -> Optional[User]:
        key = username.strip().casefold()
        users = await self.find()
        return next((user for user in users if user.username.casefold() == key), None)
