"""Playback controller state machine.

Owns the queue and cursor. Consumes user intents and backend events one at a
time, issues declarative commands to a MediaBackend, and feeds position
updates to the play-count tracker.

States: Idle (no cursor) and Loaded (cursor set, playing or not). Backend
failures never escape; they leave the cursor in place with playing=False.
"""

import asyncio
import random
from enum import Enum
from typing import Any, Callable, NamedTuple, Optional, Sequence

from loguru import logger

from music_shelf.domain.library.models import Song

from .backend import MediaBackend
from .exceptions import PlaybackLoadFailure
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
from .queue import Queue, ShuffleMode, build_queue, relocate
from .tracker import PlayCountTracker


class RepeatMode(str, Enum):
    NONE = "none"
    ALL = "all"
    ONE = "one"

    def next(self) -> "RepeatMode":
        """Cycle none -> all -> one -> none."""
        order = list(RepeatMode)
        return order[(order.index(self) + 1) % len(order)]


class PlaybackSnapshot(NamedTuple):
    """Immutable view of the controller state."""

    queue: Queue = ()
    index: int = -1
    is_playing: bool = False
    position: float = 0.0
    duration: float = 0.0
    shuffle_mode: ShuffleMode = ShuffleMode.NONE
    repeat_mode: RepeatMode = RepeatMode.NONE
    last_error: Optional[str] = None
    ended: bool = False

    @property
    def has_cursor(self) -> bool:
        return 0 <= self.index < len(self.queue)

    @property
    def current_song(self) -> Optional[Song]:
        return self.queue[self.index] if self.has_cursor else None

    @property
    def status(self) -> str:
        if not self.has_cursor:
            return "idle"
        return "playing" if self.is_playing else "paused"


class PlaybackController:
    """Single-consumer playback state machine.

    Use ``dispatch`` to process a message directly, or ``post`` plus ``run``
    to drive the controller from an inbox (backend event sources post into
    the same inbox).
    """

    def __init__(
        self,
        backend: MediaBackend,
        tracker: PlayCountTracker,
        shuffle_mode: ShuffleMode = ShuffleMode.NONE,
        repeat_mode: RepeatMode = RepeatMode.NONE,
        restart_threshold: float = 3.0,
        rng: Optional[random.Random] = None,
    ):
        self._backend = backend
        self._tracker = tracker
        self._restart_threshold = restart_threshold
        self._rng = rng
        self._source: tuple[Song, ...] = ()
        self._state = PlaybackSnapshot(
            shuffle_mode=ShuffleMode(shuffle_mode),
            repeat_mode=RepeatMode(repeat_mode),
        )
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._listeners: list[Callable[[PlaybackSnapshot], None]] = []
        self._handlers: dict[type, Callable[[Any], Any]] = {
            Play: self._play,
            TogglePlay: self._toggle_play,
            Pause: self._pause,
            Resume: self._resume,
            Stop: self._stop,
            Next: self._next,
            Prev: self._prev,
            Seek: self._seek,
            SetSource: self._set_source,
            ToggleShuffle: self._toggle_shuffle,
            ToggleRepeat: self._toggle_repeat,
            PositionChanged: self._position_changed,
            DurationKnown: self._duration_known,
            TrackEnded: self._track_ended,
            LoadFailed: self._load_failed,
        }

    @property
    def snapshot(self) -> PlaybackSnapshot:
        return self._state

    def add_listener(self, listener: Callable[[PlaybackSnapshot], None]) -> None:
        """Call ``listener`` with the new snapshot whenever state changes."""
        self._listeners.append(listener)

    # Message processing

    def post(self, message: Any) -> None:
        """Queue a message for ``run``. Safe to use as a backend emit callback."""
        self._inbox.put_nowait(message)

    async def run(self) -> None:
        """Process inbox messages in arrival order until Shutdown."""
        while True:
            message = await self._inbox.get()
            try:
                if isinstance(message, Shutdown):
                    return
                await self.dispatch(message)
            finally:
                self._inbox.task_done()

    async def dispatch(self, message: Any) -> PlaybackSnapshot:
        """Process one message and return the resulting snapshot."""
        handler = self._handlers.get(type(message))
        if handler is None:
            raise TypeError(f"Unsupported playback message: {message!r}")

        before = self._state
        await handler(message)
        if self._state != before:
            for listener in self._listeners:
                listener(self._state)
        return self._state

    # Backend boundary

    async def _call_backend(self, method: str, *args: Any) -> bool:
        try:
            await getattr(self._backend, method)(*args)
        except PlaybackLoadFailure as e:
            await self._fail(str(e))
            return False
        except Exception as e:
            logger.exception(f"Media backend '{method}' failed")
            await self._fail(str(e) or type(e).__name__)
            return False
        return True

    async def _fail(self, reason: str) -> None:
        song = self._state.current_song
        logger.error(f"Playback failed for {song.id if song else '<none>'}: {reason}")
        self._tracker.end_session()
        self._state = self._state._replace(is_playing=False, last_error=reason)

    async def _load_current(self) -> None:
        """Load the song under the cursor and play it if the cursor is playing."""
        if not await self._call_backend("load", self._state.current_song):
            return
        if self._state.is_playing:
            await self._call_backend("play")

    async def _move_to(self, index: int) -> None:
        """Pointer change: new play-session and a fresh backend load."""
        self._tracker.end_session()
        song = self._state.queue[index]
        self._state = self._state._replace(
            index=index,
            position=0.0,
            duration=song.duration,
            last_error=None,
            ended=False,
        )
        self._tracker.start_session(song.id)
        await self._load_current()

    async def _restart_current(self, play: bool) -> None:
        self._tracker.start_session(self._state.current_song.id)
        self._state = self._state._replace(
            position=0.0, is_playing=self._state.is_playing or play, ended=False
        )
        if await self._call_backend("seek", 0.0) and self._state.is_playing:
            await self._call_backend("play")

    def _build(self, source: Sequence[Song]) -> Queue:
        return build_queue(source, self._state.shuffle_mode, self._rng)

    def _is_stale(self, song_id: Optional[str]) -> bool:
        current = self._state.current_song
        return current is None or (song_id is not None and song_id != current.id)

    # Intents

    async def _play(self, msg: Play) -> None:
        if msg.song_id is None and msg.source is None and self._state.has_cursor:
            await self._resume(Resume())
            return

        source = tuple(msg.source) if msg.source is not None else self._source
        queue = self._build(source)
        if not queue:
            logger.info("Nothing to play: source is empty")
            return

        index = 0 if msg.song_id is None else relocate(queue, msg.song_id)
        if index is None:
            logger.warning(f"Song {msg.song_id} not in the current source; ignoring play")
            return

        self._source = source
        self._state = self._state._replace(queue=queue, is_playing=True)
        await self._move_to(index)

    async def _toggle_play(self, msg: TogglePlay) -> None:
        if not self._state.has_cursor:
            await self._play(Play())
        elif self._state.is_playing:
            await self._pause(Pause())
        else:
            await self._resume(Resume())

    async def _pause(self, msg: Pause) -> None:
        if not self._state.has_cursor or not self._state.is_playing:
            return
        self._state = self._state._replace(is_playing=False)
        await self._call_backend("pause")

    async def _resume(self, msg: Resume) -> None:
        state = self._state
        if not state.has_cursor or state.is_playing:
            return
        if state.ended or 0 < state.duration <= state.position:
            # Nothing left to play at the end of the track
            self._state = state._replace(last_error=None)
            await self._restart_current(play=True)
            return
        self._tracker.ensure_session(self._state.current_song.id)
        self._state = self._state._replace(is_playing=True, last_error=None)
        await self._call_backend("play")

    async def _stop(self, msg: Stop) -> None:
        if not self._state.has_cursor:
            return
        self._tracker.end_session()
        self._state = PlaybackSnapshot(
            shuffle_mode=self._state.shuffle_mode,
            repeat_mode=self._state.repeat_mode,
        )
        await self._call_backend("stop")

    async def _next(self, msg: Next) -> None:
        state = self._state
        if not state.has_cursor:
            return

        if state.repeat_mode is RepeatMode.ONE:
            await self._restart_current(play=True)
            return

        index = state.index + 1
        if index >= len(state.queue):
            if state.repeat_mode is RepeatMode.ALL:
                index = 0
            else:
                # Stopped at end: pointer stays on the last track
                self._tracker.end_session()
                self._state = state._replace(is_playing=False, ended=True)
                if state.is_playing:
                    await self._call_backend("pause")
                return

        await self._move_to(index)

    async def _prev(self, msg: Prev) -> None:
        state = self._state
        if not state.has_cursor:
            return

        if state.position > self._restart_threshold:
            await self._restart_current(play=False)
            return

        index = state.index - 1
        if index < 0:
            if state.repeat_mode is not RepeatMode.ALL:
                return
            index = len(state.queue) - 1

        await self._move_to(index)

    async def _seek(self, msg: Seek) -> None:
        if not self._state.has_cursor:
            return
        position = max(0.0, msg.position)
        if self._state.duration > 0:
            position = min(position, self._state.duration)
        self._state = self._state._replace(position=position, ended=False)
        await self._call_backend("seek", position)

    async def _set_source(self, msg: SetSource) -> None:
        self._source = tuple(msg.source)
        if self._state.has_cursor:
            await self._rebuild()

    async def _toggle_shuffle(self, msg: ToggleShuffle) -> None:
        mode = self._state.shuffle_mode.next()
        self._state = self._state._replace(shuffle_mode=mode)
        logger.info(f"Shuffle mode: {mode.value}")
        if self._state.has_cursor:
            await self._rebuild()

    async def _toggle_repeat(self, msg: ToggleRepeat) -> None:
        mode = self._state.repeat_mode.next()
        self._state = self._state._replace(repeat_mode=mode)
        logger.info(f"Repeat mode: {mode.value}")

    async def _rebuild(self) -> None:
        """Rebuild the queue from the held source, keeping the current song.

        The backend is not reloaded. If the current song is no longer in the
        source, playback stops.
        """
        current = self._state.current_song
        queue = self._build(self._source)
        index = relocate(queue, current.id)
        if index is None:
            logger.info(f"Current song {current.id} left the source; stopping")
            await self._stop(Stop())
            return
        self._state = self._state._replace(queue=queue, index=index)

    # Backend events

    async def _position_changed(self, msg: PositionChanged) -> None:
        if self._is_stale(msg.song_id):
            return
        self._state = self._state._replace(position=msg.position)
        self._tracker.observe(
            self._state.current_song.id, msg.position, self._state.is_playing
        )

    async def _duration_known(self, msg: DurationKnown) -> None:
        if self._is_stale(msg.song_id):
            return
        self._state = self._state._replace(duration=max(0.0, msg.duration))

    async def _track_ended(self, msg: TrackEnded) -> None:
        if self._is_stale(msg.song_id):
            return
        state = self._state
        # Final threshold check before the session closes
        self._tracker.observe(state.current_song.id, state.position, state.is_playing)
        self._tracker.end_session()
        await self._next(Next())

    async def _load_failed(self, msg: LoadFailed) -> None:
        if self._is_stale(msg.song_id):
            return
        await self._fail(msg.reason)
