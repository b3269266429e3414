"""
Music library domain models.

Songs and playlists are immutable snapshots; only the library store writes them.
"""

from typing import NamedTuple, Optional

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"


class Song(NamedTuple):
    """A song in the library.

    ``id`` is derived from the source file's name and modification time, so
    re-importing an unchanged file yields the same identity.
    """

    id: str
    file_name: str
    title: str
    artist: str = UNKNOWN_ARTIST
    album: str = UNKNOWN_ALBUM
    duration: float = 0.0  # seconds, 0 until resolved
    play_count: int = 0
    date_added: float = 0.0  # epoch seconds
    file_path: Optional[str] = None  # media handle handed to the backend


class Playlist(NamedTuple):
    """A named, ordered list of song identities.

    References are weak: a song id may no longer exist in the library.
    """

    id: int
    name: str
    date_created: float
    song_ids: tuple[str, ...] = ()


class ImportRecord(NamedTuple):
    """Fully-resolved data handed over by the import boundary.

    Missing tags stay ``None``; defaults are applied on import.
    """

    song_id: str
    file_name: str
    file_path: Optional[str] = None
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    duration: float = 0.0


class ImportResult(NamedTuple):
    """Outcome of an import batch."""

    added: int = 0
    updated: int = 0
    skipped_duplicates: int = 0
    unresolved_metadata: int = 0
