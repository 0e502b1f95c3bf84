"""
Tests for atomic operation descriptors and their reference semantics.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple

import pytest

from music_collection.domain.operations import (
    AddToSet,
    CompareAndSet,
    Increment,
    Mutation,
    Pull,
    SetFields,
    ToggleMember,
    apply_operation,
)
from music_collection.domain.result import ConcurrentModificationError

EPOCH = datetime(2020, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Doc:
    id: str = "doc"
    count: int = 0
    items: Tuple[str, ...] = ()
    marker: Optional[str] = None
    updated_at: datetime = field(default=EPOCH)


class TestApplyOperation:
    """Test apply_operation for every operation kind."""

    def test_increment(self):
        doc = apply_operation(Doc(count=2), Increment("count", 3))
        assert doc.count == 5

    def test_add_to_set_appends_missing_values_in_order(self):
        doc = apply_operation(Doc(items=("a",)), AddToSet("items", ("b", "a", "c", "b")))
        assert doc.items == ("a", "b", "c")

    def test_pull_removes_every_occurrence(self):
        doc = apply_operation(Doc(items=("a", "b", "a", "c")), Pull("items", "a"))
        assert doc.items == ("b", "c")

    def test_pull_of_absent_value_keeps_sequence(self):
        doc = apply_operation(Doc(items=("a", "b")), Pull("items", "z"))
        assert doc.items == ("a", "b")

    def test_toggle_member(self):
        doc = apply_operation(Doc(), ToggleMember("items", "u1"))
        assert doc.items == ("u1",)
        doc = apply_operation(doc, ToggleMember("items", "u1"))
        assert doc.items == ()

    def test_compare_and_set(self):
        doc = apply_operation(Doc(marker="old"), CompareAndSet("marker", expected="old", value="new"))
        assert doc.marker == "new"

    def test_compare_and_set_mismatch(self):
        with pytest.raises(ConcurrentModificationError):
            apply_operation(Doc(marker="other"), CompareAndSet("marker", expected="old", value="new"))

    def test_set_fields(self):
        doc = apply_operation(Doc(), SetFields({"count": 7, "marker": "m"}))
        assert (doc.count, doc.marker) == (7, "m")

    def test_touch_refreshes_updated_at(self):
        assert apply_operation(Doc(), Increment("count")).updated_at > EPOCH

    def test_touch_can_be_disabled(self):
        assert apply_operation(Doc(), Increment("count", touch=False)).updated_at == EPOCH

    def test_original_is_not_modified(self):
        original = Doc(items=("a",))
        apply_operation(original, AddToSet("items", ("b",)))
        assert original.items == ("a",)

    def test_unknown_operation(self):
        from music_collection.domain.operations import Operation
        with pytest.raises(TypeError):
            apply_operation(Doc(), Operation())


def test_mutation_noop():
    assert Mutation(Doc(), None).is_noop
    assert not Mutation(Doc(), Increment("count")).is_noop
