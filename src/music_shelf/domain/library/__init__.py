"""Library domain - songs, playlists and their persistence.

This domain handles:
- Song and playlist models
- The async SQLite library store
- Import (identity, metadata defaults, duplicate policy) and folder scanning
- Source views (filter/sort, playlist resolution)
"""

from .models import (
    UNKNOWN_ALBUM,
    UNKNOWN_ARTIST,
    ImportRecord,
    ImportResult,
    Playlist,
    Song,
)
from .exceptions import LibraryError, PlaylistNotFoundError, StorageUnavailable
from .store import LibraryStore
from .import_songs import import_songs, make_song_id, song_from_record, title_from_file_name
from .metadata import format_duration, read_import_record, scan_directory
from .views import (
    SORT_KEYS,
    SortOption,
    SourceView,
    filter_songs,
    materialize_view,
    resolve_playlist_songs,
    sort_songs,
)

__all__ = [
    # Models
    "UNKNOWN_ALBUM",
    "UNKNOWN_ARTIST",
    "ImportRecord",
    "ImportResult",
    "Playlist",
    "Song",
    # Errors
    "LibraryError",
    "PlaylistNotFoundError",
    "StorageUnavailable",
    # Store
    "LibraryStore",
    # Import
    "import_songs",
    "make_song_id",
    "song_from_record",
    "title_from_file_name",
    "format_duration",
    "read_import_record",
    "scan_directory",
    # Views
    "SORT_KEYS",
    "SortOption",
    "SourceView",
    "filter_songs",
    "materialize_view",
    "resolve_playlist_songs",
    "sort_songs",
]
