"""Play-count tracking.

A play-through counts once it has been continuously playing past the
threshold. Each play-through is a session; ending a session (stop, moving the
pointer, restarting the track, track end) clears its counted marker so the
next play-through can count again. Pausing does not end a session.
"""

import asyncio
from typing import Callable, Optional, Protocol

from loguru import logger

from music_shelf.domain.library.exceptions import LibraryError


class PlayCountStore(Protocol):
    async def increment_play_count(self, song_id: str) -> bool: ...


class PlayCountTracker:
    """Watches position updates and persists one increment per session."""

    def __init__(
        self,
        store: PlayCountStore,
        threshold: float = 5.0,
        on_counted: Optional[Callable[[str], None]] = None,
    ):
        self.threshold = threshold
        self._store = store
        self._on_counted = on_counted
        self._session: Optional[tuple[str, int]] = None
        self._session_seq = 0
        self._counted: set[tuple[str, int]] = set()
        self._pending: set[asyncio.Task] = set()

    @property
    def active_song_id(self) -> Optional[str]:
        return self._session[0] if self._session else None

    def start_session(self, song_id: str) -> None:
        """Begin a new play-through of ``song_id``, ending any current one."""
        self.end_session()
        self._session_seq += 1
        self._session = (song_id, self._session_seq)

    def ensure_session(self, song_id: str) -> None:
        """Start a session unless one for ``song_id`` is already open."""
        if self.active_song_id != song_id:
            self.start_session(song_id)

    def end_session(self) -> None:
        if self._session is not None:
            self._counted.discard(self._session)
            self._session = None

    def observe(self, song_id: str, position: float, is_playing: bool) -> bool:
        """Feed a position update.

        Returns:
            True if this update crossed the threshold and an increment was
            scheduled
        """
        session = self._session
        if not is_playing or session is None or session[0] != song_id:
            return False
        if position < self.threshold or session in self._counted:
            return False

        self._counted.add(session)
        task = asyncio.get_running_loop().create_task(self._increment(song_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _increment(self, song_id: str) -> None:
        # Fire-and-forget: playback never waits on or fails because of this
        try:
            counted = await self._store.increment_play_count(song_id)
        except LibraryError as e:
            logger.error(f"Failed to record play for {song_id}: {e}")
            return

        if counted:
            logger.debug(f"Recorded play for {song_id}")
            if self._on_counted:
                self._on_counted(song_id)

    async def drain(self) -> None:
        """Wait for all scheduled increments to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
