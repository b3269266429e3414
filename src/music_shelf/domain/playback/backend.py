"""Media backend boundary.

The controller issues declarative commands through this protocol; backends
report back by emitting event messages into the controller's inbox.
"""

from typing import Callable, Protocol

from music_shelf.domain.library.models import Song

from .messages import DurationKnown, LoadFailed, PositionChanged, TrackEnded

BackendEvent = PositionChanged | DurationKnown | TrackEnded | LoadFailed
EmitFn = Callable[[BackendEvent], None]


class MediaBackend(Protocol):
    """What the playback controller needs from an audio output."""

    async def load(self, song: Song) -> None:
        """Replace the current media with ``song`` (paused until play()).

        Raises:
            PlaybackLoadFailure: If the backend rejects the media
        """
        ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def seek(self, position: float) -> None: ...

    async def stop(self) -> None: ...
