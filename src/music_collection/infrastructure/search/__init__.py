"""Search capability implementations."""

from .text_index import TokenizedTextSearch, playlist_search, tokenize, track_search

__all__ = ["TokenizedTextSearch", "playlist_search", "tokenize", "track_search"]
