"""Library-specific exceptions for error handling."""


class LibraryError(Exception):
    """Base exception for library store operations."""

    pass


class StorageUnavailable(LibraryError):
    """Raised when the backing store cannot be opened or committed."""

    pass


class PlaylistNotFoundError(LibraryError):
    """Raised when a playlist edit targets a playlist id that doesn't exist."""

    def __init__(self, playlist_id: int):
        super().__init__(f"Playlist {playlist_id} not found")
        self.playlist_id = playlist_id
