"""
Pytest configuration and shared fixtures
"""

from pathlib import Path
from typing import Optional

import pytest

from music_shelf.domain.library import LibraryStore, Song, StorageUnavailable
from music_shelf.domain.playback import PlaybackLoadFailure, PlayCountTracker


def make_song(song_id: str, play_count: int = 0, duration: float = 180.0, **kwargs) -> Song:
    """Build a Song whose title/file name follow its id."""
    fields = {
        "file_name": f"{song_id}.mp3",
        "title": kwargs.pop("title", song_id),
        "duration": duration,
        "play_count": play_count,
        "file_path": f"/music/{song_id}.mp3",
    }
    fields.update(kwargs)
    return Song(id=song_id, **fields)


class FakeBackend:
    """Records every backend command; fails loads for ids in ``fail_on_load``."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.fail_on_load: set[str] = set()
        self.fail_on_play = False

    async def load(self, song: Song) -> None:
        self.calls.append(("load", song.id))
        if song.id in self.fail_on_load:
            raise PlaybackLoadFailure(f"cannot decode {song.file_name}")

    async def play(self) -> None:
        self.calls.append(("play",))
        if self.fail_on_play:
            raise RuntimeError("audio device lost")

    async def pause(self) -> None:
        self.calls.append(("pause",))

    async def seek(self, position: float) -> None:
        self.calls.append(("seek", position))

    async def stop(self) -> None:
        self.calls.append(("stop",))

    def loads(self) -> list[str]:
        return [call[1] for call in self.calls if call[0] == "load"]


class FakePlayCountStore:
    """Collects increments instead of writing them."""

    def __init__(self, error: Optional[Exception] = None):
        self.increments: list[str] = []
        self.error = error

    async def increment_play_count(self, song_id: str) -> bool:
        if self.error is not None:
            raise self.error
        self.increments.append(song_id)
        return True


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "library" / "music_shelf.db"


@pytest.fixture
def store(db_path: Path) -> LibraryStore:
    """A library store on a fresh temporary database."""
    return LibraryStore(db_path)


@pytest.fixture
def songs() -> list[Song]:
    return [make_song(song_id) for song_id in ("A", "B", "C")]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def play_store() -> FakePlayCountStore:
    return FakePlayCountStore()


@pytest.fixture
def failing_play_store() -> FakePlayCountStore:
    return FakePlayCountStore(error=StorageUnavailable("disk full"))


@pytest.fixture
def tracker(play_store: FakePlayCountStore) -> PlayCountTracker:
    return PlayCountTracker(play_store, threshold=5.0)
