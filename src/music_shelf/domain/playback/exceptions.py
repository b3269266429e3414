"""Playback-specific exceptions for error handling."""


class PlaybackError(Exception):
    """Base exception for media backend operations."""

    pass


class PlaybackLoadFailure(PlaybackError):
    """Raised when the backend rejects a load or play for the current song.

    Never escapes the playback controller; it is absorbed into a stopped state.
    """

    pass


class BackendUnavailableError(PlaybackError):
    """Raised when the media backend process can't be started or reached."""

    pass
