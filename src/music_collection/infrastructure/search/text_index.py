"""Token-based free-text search.

Documents are indexed over a fixed set of text fields. Text is folded to
lower case without accents and split into word tokens; a document matches
when it contains every token of the query.
"""

import re
import unicodedata
from typing import Callable, FrozenSet, Generic, Iterable, List, Sequence, TypeVar

from ...domain.catalog.entities import Track
from ...domain.collection.entities import Playlist
from ...domain.query import SearchCapability

T = TypeVar("T")

_WORD = re.compile(r"\w+")


def tokenize(text: str) -> List[str]:
    """Lower-cased, accent-folded word tokens of ``text``."""
    decomposed = unicodedata.normalize("NFKD", text)
    folded = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _WORD.findall(folded.casefold())


class TokenizedTextSearch(SearchCapability[T], Generic[T]):
    """SearchCapability over the text returned by ``fields_of``."""

    def __init__(self, fields_of: Callable[[T], Iterable[str]]):
        self.fields_of = fields_of

    def tokens_of(self, document: T) -> FrozenSet[str]:
        return frozenset(
            token
            for text in self.fields_of(document) if text
            for token in tokenize(text)
        )

    def search(self, candidates: Sequence[T], query: str) -> List[T]:
        wanted = set(tokenize(query))
        if not wanted:
            return list(candidates)
        return [doc for doc in candidates if wanted <= self.tokens_of(doc)]


def track_search() -> TokenizedTextSearch[Track]:
    """Search over title, artist and tags."""
    return TokenizedTextSearch(lambda track: (track.title, track.artist, *track.tags))


def playlist_search() -> TokenizedTextSearch[Playlist]:
    """Search over name and description."""
    return TokenizedTextSearch(lambda playlist: (playlist.name, playlist.description or ""))
