"""Atomic per-document update operations.

Entity transitions never save whole documents. They describe the single
atomic update the datastore has to perform, and the repository applies it
under its own per-document guarantee (an atomic increment, an array
add-if-absent, a compare-and-set, ...). ``apply_operation`` is the pure
reference semantics of every operation; the in-memory repository runs it
while holding the document lock.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Mapping, Optional, Tuple, TypeVar

from .result import ConcurrentModificationError

D = TypeVar("D")


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Operation:
    """Base class for atomic document operations."""

    touch: bool = field(default=True, kw_only=True)


@dataclass(frozen=True, slots=True)
class Increment(Operation):
    """Atomically add ``amount`` to a numeric field."""

    field: str
    amount: int = 1


@dataclass(frozen=True, slots=True)
class AddToSet(Operation):
    """Append each value to a sequence field unless it is already present."""

    field: str
    values: Tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class Pull(Operation):
    """Remove every occurrence of a value from a sequence field."""

    field: str
    value: Any


@dataclass(frozen=True, slots=True)
class ToggleMember(Operation):
    """Remove the value from a sequence field if present, otherwise append it."""

    field: str
    value: Any


@dataclass(frozen=True, slots=True)
class CompareAndSet(Operation):
    """Replace a field only if it still holds the expected value."""

    field: str
    expected: Any
    value: Any


@dataclass(frozen=True, slots=True)
class SetFields(Operation):
    """Overwrite a set of scalar fields."""

    values: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class Mutation(Generic[D]):
    """The next state of an entity together with the atomic operation producing it."""

    next_state: D
    operation: Optional[Operation]

    @property
    def is_noop(self) -> bool:
        return self.operation is None


def apply_operation(document: D, operation: Operation) -> D:
    """Return ``document`` with ``operation`` applied.

    Raises:
        ConcurrentModificationError: If a ``CompareAndSet`` expectation fails.
    """
    changes: Dict[str, Any]

    if isinstance(operation, Increment):
        changes = {operation.field: getattr(document, operation.field) + operation.amount}

    elif isinstance(operation, AddToSet):
        current = list(getattr(document, operation.field))
        for value in operation.values:
            if value not in current:
                current.append(value)
        changes = {operation.field: tuple(current)}

    elif isinstance(operation, Pull):
        current = getattr(document, operation.field)
        changes = {operation.field: tuple(v for v in current if v != operation.value)}

    elif isinstance(operation, ToggleMember):
        current = tuple(getattr(document, operation.field))
        if operation.value in current:
            changes = {operation.field: tuple(v for v in current if v != operation.value)}
        else:
            changes = {operation.field: current + (operation.value,)}

    elif isinstance(operation, CompareAndSet):
        current = getattr(document, operation.field)
        if current != operation.expected:
            raise ConcurrentModificationError(
                f"{operation.field} was modified concurrently"
            )
        changes = {operation.field: operation.value}

    elif isinstance(operation, SetFields):
        changes = dict(operation.values)

    else:
        raise TypeError(f"Unsupported operation: {type(operation).__name__}")

    if operation.touch and hasattr(document, "updated_at"):
        changes["updated_at"] = utcnow()
    return replace(document, **changes)
