"""Shared listing semantics: pagination, search, tag filters and sorting.

Both catalogs list documents the same way. A repository returns the
candidate set for a set of equality criteria and visibility rules; this
module narrows it with free-text search (through a ``SearchCapability``),
tag filters and catalog-specific field filters, sorts it deterministically
and cuts the page. Totals are computed from the very list the page is cut
from.
"""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .result import ValidationError

T = TypeVar("T")

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_SORT_FIELD = "created_at"

_INTEGER = re.compile(r"-?[0-9]+")


class SortOrder(Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Any) -> Optional["SortOrder"]:
        """Parse a sort direction; ``None`` stays unspecified."""
        if value is None or isinstance(value, SortOrder):
            return value
        if isinstance(value, str) and value.lower() in ("asc", "desc"):
            return cls(value.lower())
        raise ValidationError("sort_order must be 'asc' or 'desc'", field="sort_order")


def _positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
    if isinstance(value, str):
        value = value.strip()
        if not _INTEGER.fullmatch(value):
            raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
        value = int(value)
    if not isinstance(value, int) or value < 1:
        raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
    return value


@dataclass(frozen=True, slots=True)
class ListQuery:
    """
    A listing request.

    ``filters`` holds catalog-specific field filters; keys a catalog does
    not recognise are ignored.
    """

    search: Optional[str] = None
    filters: Mapping[str, Any] = field(default_factory=dict)
    tags: Sequence[str] = ()
    page: int = 1
    limit: int = DEFAULT_LIMIT
    sort_field: Optional[str] = None
    sort_order: Optional[SortOrder] = None

    def validated(self, max_limit: int = MAX_LIMIT) -> "ListQuery":
        """Return a copy with page, limit and sort order checked and normalized.

        Raises:
            ValidationError: If ``page`` or ``limit`` is not a positive integer,
                or ``limit`` exceeds ``max_limit``.
        """
        page = _positive_int(self.page, "page")
        limit = _positive_int(self.limit, "limit")
        if limit > max_limit:
            raise ValidationError(f"limit must not exceed {max_limit}", field="limit")
        tags = self.tags
        if isinstance(tags, str):
            tags = [tags]
        search = self.search.strip() if isinstance(self.search, str) else None
        return ListQuery(
            search=search or None,
            filters=dict(self.filters or {}),
            tags=tuple(tags or ()),
            page=page,
            limit=limit,
            sort_field=self.sort_field,
            sort_order=SortOrder.parse(self.sort_order),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def with_sort_preset(self, presets: Mapping[str, Tuple[str, SortOrder]]) -> "ListQuery":
        """Expand a named ``sort`` filter (e.g. ``newest``) into field and order.

        An explicit ``sort_field`` wins over the preset.
        """
        name = self.filters.get("sort") if self.filters else None
        if self.sort_field is not None or name not in presets:
            return self
        sort_field, sort_order = presets[name]
        return replace(self, sort_field=sort_field, sort_order=sort_order)

    @classmethod
    def from_params(cls, params: Mapping[str, Any], *, default_limit: int = DEFAULT_LIMIT) -> "ListQuery":
        """Build a query from loose request parameters (query-string style)."""
        known = {"search", "tags", "page", "limit", "sort_field", "sort_order", "sort_by"}
        tags = params.get("tags") or ()
        if isinstance(tags, str):
            tags = [t for t in tags.split(",")]
        return cls(
            search=params.get("search"),
            filters={k: v for k, v in params.items() if k not in known},
            tags=tuple(tags),
            page=params.get("page", 1),
            limit=params.get("limit", default_limit),
            sort_field=params.get("sort_field") or params.get("sort_by"),
            sort_order=params.get("sort_order"),
        )


@dataclass(frozen=True, slots=True)
class PageInfo:
    """Pagination metadata for a listing."""

    page: int
    limit: int
    total_items: int
    total_pages: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "totalItems": self.total_items,
            "totalPages": self.total_pages,
        }


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    """One page of results."""

    items: List[T]
    info: PageInfo

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


class SearchCapability(ABC, Generic[T]):
    """Free-text search over a candidate set.

    Implemented by the persistence side; the core never assumes how the
    index is built.
    """

    @abstractmethod
    def search(self, candidates: Sequence[T], query: str) -> List[T]:
        """Return the candidates matching ``query``, preserving their order."""
        pass


FieldFilter = Callable[[T, Any], bool]


def paginate(items: Sequence[T], query: ListQuery) -> Page[T]:
    """Cut ``query``'s page out of an already filtered and sorted list."""
    total = len(items)
    window = list(items[query.offset:query.offset + query.limit])
    return Page(
        items=window,
        info=PageInfo(
            page=query.page,
            limit=query.limit,
            total_items=total,
            total_pages=math.ceil(total / query.limit) if total else 0,
        ),
    )


def sort_documents(
    items: Iterable[T],
    sort_keys: Mapping[str, Callable[[T], Any]],
    sort_field: Optional[str],
    sort_order: Optional[SortOrder],
) -> List[T]:
    """Sort deterministically; ties fall back to ``id``.

    A missing or unknown ``sort_field`` falls back to newest-first. A known
    field without an order sorts ascending.
    """
    if sort_field not in sort_keys:
        sort_field, sort_order = DEFAULT_SORT_FIELD, SortOrder.DESC
    elif sort_order is None:
        sort_order = SortOrder.ASC
    key = sort_keys[sort_field]
    reverse = sort_order is SortOrder.DESC
    # Stable two-pass sort: id first, then the primary key
    ordered = sorted(items, key=lambda item: getattr(item, "id"), reverse=reverse)
    return sorted(ordered, key=key, reverse=reverse)


def run_listing(
    candidates: Sequence[T],
    query: ListQuery,
    *,
    search: SearchCapability[T],
    tags_of: Optional[Callable[[T], Any]],
    field_filters: Mapping[str, FieldFilter],
    sort_keys: Mapping[str, Callable[[T], Any]],
) -> Page[T]:
    """Apply search, tag and field filters, then sort and paginate.

    ``query`` must already be validated.
    """
    items: List[T] = list(candidates)

    if query.search:
        items = search.search(items, query.search)

    if query.tags and tags_of is not None:
        items = [item for item in items if tags_of(item).contains_all(query.tags)]

    for name, value in query.filters.items():
        predicate = field_filters.get(name)
        if predicate is None or value is None:
            continue
        items = [item for item in items if predicate(item, value)]

    items = sort_documents(items, sort_keys, query.sort_field, query.sort_order)
    return paginate(items, query)


def parse_bool(value: Any, field_name: str) -> bool:
    """Accept booleans and their query-string spellings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false", "1", "0"):
        return value.lower() in ("true", "1")
    raise ValidationError(f"{field_name} must be a boolean", field=field_name)


def parse_int(value: Any, field_name: str) -> int:
    """Accept integers and their query-string spellings."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER.fullmatch(value.strip()):
        return int(value.strip())
    raise ValidationError(f"{field_name} must be an integer", field=field_name)
