"""Messages consumed by the playback controller.

User intents and backend-reported events share one inbox and are processed
one at a time, in arrival order.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from music_shelf.domain.library.models import Song


# User intents


@dataclass(frozen=True)
class Play:
    """Start ``song_id`` from ``source`` (or resume when a cursor exists)."""

    song_id: Optional[str] = None
    source: Optional[Sequence[Song]] = None


@dataclass(frozen=True)
class TogglePlay:
    pass


@dataclass(frozen=True)
class Pause:
    pass


@dataclass(frozen=True)
class Resume:
    pass


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class Next:
    pass


@dataclass(frozen=True)
class Prev:
    pass


@dataclass(frozen=True)
class Seek:
    position: float


@dataclass(frozen=True)
class SetSource:
    """The visible source view changed (new filter, sort, playlist or library data)."""

    source: Sequence[Song]


@dataclass(frozen=True)
class ToggleShuffle:
    pass


@dataclass(frozen=True)
class ToggleRepeat:
    pass


@dataclass(frozen=True)
class Shutdown:
    """Stops ``PlaybackController.run``."""

    pass


# Backend events. ``song_id`` (when the backend knows it) lets the controller
# drop events that belong to a song it has already moved away from.


@dataclass(frozen=True)
class PositionChanged:
    position: float
    song_id: Optional[str] = None


@dataclass(frozen=True)
class DurationKnown:
    duration: float
    song_id: Optional[str] = None


@dataclass(frozen=True)
class TrackEnded:
    song_id: Optional[str] = None


@dataclass(frozen=True)
class LoadFailed:
    reason: str
    song_id: Optional[str] = None
