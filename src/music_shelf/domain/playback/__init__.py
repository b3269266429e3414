"""Playback domain - queue building, transport state machine and play counts.

This domain handles:
- Queue building (in order, random and weighted shuffle)
- The playback controller (cursor, repeat/shuffle, backend commands)
- Play-count tracking per play-session
- MPV integration via JSON IPC
"""

from .exceptions import BackendUnavailableError, PlaybackError, PlaybackLoadFailure
from .queue import Queue, ShuffleMode, build_queue, relocate
from .messages import (
    DurationKnown,
    LoadFailed,
    Next,
    Pause,
    Play,
    PositionChanged,
    Prev,
    Resume,
    Seek,
    SetSource,
    Shutdown,
    Stop,
    TogglePlay,
    ToggleRepeat,
    ToggleShuffle,
    TrackEnded,
)
from .backend import MediaBackend
from .tracker import PlayCountTracker
from .controller import PlaybackController, PlaybackSnapshot, RepeatMode
from .mpv import MpvBackend, check_mpv_available

__all__ = [
    # Errors
    "BackendUnavailableError",
    "PlaybackError",
    "PlaybackLoadFailure",
    # Queue
    "Queue",
    "ShuffleMode",
    "build_queue",
    "relocate",
    # Messages
    "DurationKnown",
    "LoadFailed",
    "Next",
    "Pause",
    "Play",
    "PositionChanged",
    "Prev",
    "Resume",
    "Seek",
    "SetSource",
    "Shutdown",
    "Stop",
    "TogglePlay",
    "ToggleRepeat",
    "ToggleShuffle",
    "TrackEnded",
    # Controller
    "MediaBackend",
    "PlayCountTracker",
    "PlaybackController",
    "PlaybackSnapshot",
    "RepeatMode",
    # MPV
    "MpvBackend",
    "check_mpv_available",
]
