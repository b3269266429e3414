"""
Library store: durable keyed storage for songs and playlists.

Every public operation is a coroutine wrapping one SQLite transaction run in a
worker thread. There is no atomicity across separate calls.
"""

import asyncio
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, TypeVar

from loguru import logger

from music_shelf.core.database import get_db_connection, init_database

from .exceptions import PlaylistNotFoundError, StorageUnavailable
from .models import Playlist, Song

T = TypeVar("T")

_SONG_COLUMNS = (
    "id, file_name, title, artist, album, duration, play_count, date_added, file_path"
)


def _row_to_song(row: sqlite3.Row) -> Song:
    return Song(
        id=row["id"],
        file_name=row["file_name"],
        title=row["title"],
        artist=row["artist"],
        album=row["album"],
        duration=row["duration"],
        play_count=row["play_count"],
        date_added=row["date_added"],
        file_path=row["file_path"],
    )


def _require_playlist(conn: sqlite3.Connection, playlist_id: int) -> None:
    row = conn.execute(
        "SELECT 1 FROM playlists WHERE id = ?", (playlist_id,)
    ).fetchone()
    if row is None:
        raise PlaylistNotFoundError(playlist_id)


class LibraryStore:
    """Async facade over the SQLite library database."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._initialized = False

    # Plumbing

    def _execute(self, operation: Callable[..., T], *args: Any) -> T:
        try:
            if not self._initialized:
                init_database(self.db_path)
                self._initialized = True
            with get_db_connection(self.db_path) as conn:
                return operation(conn, *args)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Library store failure in {operation.__name__}: {e}")
            raise StorageUnavailable(
                f"Library store unavailable ({self.db_path}): {e}"
            ) from e

    async def _run(self, operation: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(self._execute, operation, *args)

    async def open(self) -> None:
        """Create or migrate the schema up front (otherwise done lazily)."""
        await self._run(lambda conn: None)

    # Songs

    async def list_songs(self) -> list[Song]:
        """Full snapshot of the library, oldest first."""

        def _list(conn: sqlite3.Connection) -> list[Song]:
            cursor = conn.execute(
                f"SELECT {_SONG_COLUMNS} FROM songs ORDER BY date_added, id"
            )
            return [_row_to_song(row) for row in cursor.fetchall()]

        return await self._run(_list)

    async def get_song(self, song_id: str) -> Optional[Song]:
        def _get(conn: sqlite3.Connection) -> Optional[Song]:
            row = conn.execute(
                f"SELECT {_SONG_COLUMNS} FROM songs WHERE id = ?", (song_id,)
            ).fetchone()
            return _row_to_song(row) if row else None

        return await self._run(_get)

    async def upsert_songs(self, batch: Iterable[Song]) -> None:
        """Insert or overwrite songs by identity.

        Re-submitting an identity replaces the stored record, so calling this
        twice with the same song leaves exactly one row.
        """
        rows = [
            (
                song.id,
                song.file_name,
                song.title,
                song.artist,
                song.album,
                song.duration,
                song.play_count,
                song.date_added,
                song.file_path,
            )
            for song in batch
        ]
        if not rows:
            return

        def _upsert(conn: sqlite3.Connection) -> None:
            with conn:
                conn.executemany(
                    f"""
                    INSERT OR REPLACE INTO songs ({_SONG_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )

        await self._run(_upsert)
        logger.debug(f"Upserted {len(rows)} songs")

    async def increment_play_count(self, song_id: str) -> bool:
        """Add one play to a song.

        The read and the write share one IMMEDIATE transaction, so sequential
        calls never lose an increment.

        Returns:
            False if the song doesn't exist (nothing written)
        """

        def _increment(conn: sqlite3.Connection) -> bool:
            with conn:
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(
                    "SELECT play_count FROM songs WHERE id = ?", (song_id,)
                ).fetchone()
                if row is None:
                    return False
                conn.execute(
                    "UPDATE songs SET play_count = ? WHERE id = ?",
                    (row["play_count"] + 1, song_id),
                )
            return True

        found = await self._run(_increment)
        if not found:
            logger.warning(f"Play count not incremented, unknown song: {song_id}")
        return found

    # Playlists

    async def list_playlists(self) -> list[Playlist]:
        def _list(conn: sqlite3.Connection) -> list[Playlist]:
            members: dict[int, list[str]] = {}
            for row in conn.execute(
                "SELECT playlist_id, song_id FROM playlist_songs "
                "ORDER BY playlist_id, position"
            ):
                members.setdefault(row["playlist_id"], []).append(row["song_id"])

            cursor = conn.execute(
                "SELECT id, name, date_created FROM playlists ORDER BY id"
            )
            return [
                Playlist(
                    id=row["id"],
                    name=row["name"],
                    date_created=row["date_created"],
                    song_ids=tuple(members.get(row["id"], [])),
                )
                for row in cursor.fetchall()
            ]

        return await self._run(_list)

    async def create_playlist(self, name: str) -> int:
        """Create an empty playlist and return its new id."""
        date_created = time.time()

        def _create(conn: sqlite3.Connection) -> int:
            with conn:
                cursor = conn.execute(
                    "INSERT INTO playlists (name, date_created) VALUES (?, ?)",
                    (name, date_created),
                )
            return cursor.lastrowid

        playlist_id = await self._run(_create)
        logger.info(f"Created playlist {playlist_id}: {name!r}")
        return playlist_id

    async def set_playlist_songs(self, playlist_id: int, song_ids: Iterable[str]) -> None:
        """Replace a playlist's ordered song list.

        Duplicate ids are dropped silently, keeping the first occurrence.

        Raises:
            PlaylistNotFoundError: If the playlist doesn't exist
        """
        unique_ids = list(dict.fromkeys(song_ids))

        def _set(conn: sqlite3.Connection) -> None:
            with conn:
                _require_playlist(conn, playlist_id)
                conn.execute(
                    "DELETE FROM playlist_songs WHERE playlist_id = ?", (playlist_id,)
                )
                conn.executemany(
                    "INSERT INTO playlist_songs (playlist_id, song_id, position) "
                    "VALUES (?, ?, ?)",
                    [
                        (playlist_id, song_id, position)
                        for position, song_id in enumerate(unique_ids)
                    ],
                )

        await self._run(_set)
        logger.debug(f"Playlist {playlist_id} now holds {len(unique_ids)} songs")

    async def add_song_to_playlist(self, playlist_id: int, song_id: str) -> bool:
        """Append a song to a playlist unless it's already there.

        Returns:
            True if the song was appended, False if it was already present

        Raises:
            PlaylistNotFoundError: If the playlist doesn't exist
        """

        def _add(conn: sqlite3.Connection) -> bool:
            with conn:
                _require_playlist(conn, playlist_id)
                row = conn.execute(
                    "SELECT SUM(CASE WHEN song_id = ? THEN 1 ELSE 0 END) AS present, "
                    "COALESCE(MAX(position), -1) AS last "
                    "FROM playlist_songs WHERE playlist_id = ?",
                    (song_id, playlist_id),
                ).fetchone()
                if row["present"]:
                    return False
                conn.execute(
                    "INSERT INTO playlist_songs (playlist_id, song_id, position) "
                    "VALUES (?, ?, ?)",
                    (playlist_id, song_id, row["last"] + 1),
                )
            return True

        return await self._run(_add)

    async def delete_playlist(self, playlist_id: int) -> None:
        """Delete a playlist and its membership rows (no-op if missing)."""

        def _delete(conn: sqlite3.Connection) -> int:
            with conn:
                conn.execute(
                    "DELETE FROM playlist_songs WHERE playlist_id = ?", (playlist_id,)
                )
                cursor = conn.execute(
                    "DELETE FROM playlists WHERE id = ?", (playlist_id,)
                )
            return cursor.rowcount

        deleted = await self._run(_delete)
        if deleted:
            logger.info(f"Deleted playlist {playlist_id}")
