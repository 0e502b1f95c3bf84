"""Shared document repository interface.

Tracks and playlists are stored the same way: documents addressed by id,
queried by simple equality criteria and mutated only through atomic
``Operation``s. A criterion on a sequence-valued field matches documents
whose sequence contains the value (``{"track_ids": t}`` finds every
playlist referencing ``t``).
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Iterable, List, Mapping, Optional, TypeVar

from .operations import Operation

D = TypeVar("D")

Criteria = Mapping[str, Any]


class DocumentRepository(ABC, Generic[D]):
    """Repository for owned documents with a public/private flag."""

    @abstractmethod
    async def add(self, document: D) -> None:
        """Insert a new document."""
        pass

    @abstractmethod
    async def find_by_id(self, document_id: str) -> Optional[D]:
        """Find a document by its ID."""
        pass

    @abstractmethod
    async def find_many(self, document_ids: Iterable[str]) -> List[D]:
        """Find documents by ID, in the order given; unknown ids are skipped."""
        pass

    @abstractmethod
    async def find(self, criteria: Optional[Criteria] = None) -> List[D]:
        """Find all documents matching the criteria, oldest first."""
        pass

    @abstractmethod
    async def find_visible(self, viewer_id: Optional[str], criteria: Optional[Criteria] = None) -> List[D]:
        """Find public documents plus those owned by ``viewer_id``, matching the criteria."""
        pass

    @abstractmethod
    async def apply(self, document_id: str, operation: Operation) -> Optional[D]:
        """Atomically apply an operation to one document.

        Returns the updated document, or None if it does not exist.
        """
        pass

    @abstractmethod
    async def apply_all(self, criteria: Criteria, operation: Operation) -> int:
        """Apply an operation to every matching document, each atomically.

        Not transactional across documents. Returns the number updated.
        """
        pass

    @abstractmethod
    async def delete(self, document_id: str) -> bool:
        """Delete a document; returns whether it existed."""
        pass

    @abstractmethod
    async def count(self, criteria: Optional[Criteria] = None) -> int:
        """Count documents matching the criteria."""
        pass
