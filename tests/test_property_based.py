"""Property-based tests for the collection domain.

Uses Hypothesis to check invariants of playlist membership, ordering,
pagination and tag normalization over generated inputs.
"""

from __future__ import annotations

import math

from hypothesis import given, strategies as st

from music_collection.domain.collection.entities import (
    build_playlist,
    plan_add_tracks,
    plan_purge,
    plan_reorder,
)
from music_collection.domain.operations import apply_operation
from music_collection.domain.query import ListQuery, paginate
from music_collection.domain.value_objects import TagSet

track_ids = st.text(alphabet="abcdef0123456789", min_size=1, max_size=4)
id_lists = st.lists(track_ids, max_size=20)


@given(id_lists, id_lists)
def test_adding_tracks_never_creates_duplicates(initial: list, added: list) -> None:
    """Membership stays unique however tracks are added."""
    playlist = build_playlist("owner", {"name": "P"}, initial)
    mutation = plan_add_tracks(playlist, added)
    result = mutation.next_state.track_ids

    assert len(result) == len(set(result))
    assert set(result) == set(initial) | set(added)
    # Existing order is a prefix of the new order
    assert result[:len(playlist.track_ids)] == playlist.track_ids


@given(id_lists, id_lists)
def test_adding_twice_is_idempotent(initial: list, added: list) -> None:
    playlist = build_playlist("owner", {"name": "P"}, initial)
    once = plan_add_tracks(playlist, added).next_state
    assert plan_add_tracks(once, added).is_noop


@given(st.lists(track_ids, unique=True, min_size=1, max_size=20).flatmap(
    lambda ids: st.tuples(st.just(ids), st.permutations(ids))
))
def test_any_permutation_is_a_valid_reorder(pair) -> None:
    ids, order = pair
    playlist = build_playlist("owner", {"name": "P"}, ids)
    mutation = plan_reorder(playlist, order)
    assert mutation.next_state.track_ids == tuple(order)
    assert sorted(mutation.next_state.track_ids) == sorted(ids)


@given(st.lists(track_ids, unique=True, min_size=1, max_size=20), st.data())
def test_purge_preserves_relative_order(ids: list, data) -> None:
    doomed = data.draw(st.sampled_from(ids))
    playlist = build_playlist("owner", {"name": "P"}, ids)
    purged = apply_operation(playlist, plan_purge(doomed))
    assert purged.track_ids == tuple(t for t in ids if t != doomed)


@given(
    st.integers(min_value=0, max_value=300),
    st.integers(min_value=1, max_value=100),
    st.integers(min_value=1, max_value=10),
)
def test_pagination_arithmetic(total: int, limit: int, page: int) -> None:
    items = list(range(total))
    result = paginate(items, ListQuery(page=page, limit=limit).validated())

    assert result.info.total_items == total
    assert result.info.total_pages == math.ceil(total / limit)
    assert len(result) == max(0, min(limit, total - (page - 1) * limit))
    if result.items:
        assert result.items[0] == (page - 1) * limit


@given(st.lists(st.text(max_size=20), max_size=10))
def test_tag_normalization(tags: list) -> None:
    tag_set = TagSet(tags)
    assert all(tag == tag.strip() and tag for tag in tag_set.tags)
    assert len(tag_set.tags) == len(set(tag_set.tags))
    assert TagSet(reversed(tags)) == tag_set
