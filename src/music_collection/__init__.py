"""
Music Collection - a catalog-and-collection service for audio tracks.

Users own tracks, group them into ordered playlists, browse public
content and follow other users' playlists.
"""

__version__ = "0.1.0"
